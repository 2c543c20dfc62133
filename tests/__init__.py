"""Test suite for the Barakatna form engine.

This package contains tests for:
- Condition expressions (parsing, evaluation, syntax errors)
- Conditional visibility operators
- Validation rules and whole-form validation
- Metadata loading, schema checks and reference checks
- Rendering, form sessions and the submission state machine
- Events, registry lookups and settings
- End-to-end form scenarios
"""
