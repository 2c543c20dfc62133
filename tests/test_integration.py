"""Integration tests for the form engine.

These tests load complete metadata documents and drive them through the
public API the way a host application does: look the form up in the
registry, open a session, render, edit, validate and submit.
"""

from barakatna_forms import (
    FormMetadata,
    FormRegistry,
    FormSession,
    validate_field,
    validate_form,
)
from barakatna_forms.events import EventEmitter
from barakatna_forms.types import ClientType, EventType


def home_assessment_document():
    """A home assessment form covering most field types."""
    return {
        "id": "home_assessment",
        "title": "Home Accessibility Assessment",
        "description": "Record the state of the home during the first visit",
        "module": "assessment",
        "clientTypes": ["FDF", "ADHA"],
        "permissions": {"view": ["*"], "submit": ["assessor"]},
        "sections": [
            {"id": "visit", "title": "Visit"},
            {"id": "access", "title": "Access"},
            {"id": "attachments", "title": "Attachments", "collapsible": True, "collapsed": True},
        ],
        "fields": [
            {"id": "visitDate", "name": "visitDate", "label": "Visit date", "type": "date",
             "section": "visit", "order": 1, "width": "half", "required": True,
             "validation": [{"type": "required"}]},
            {"id": "assessorEmail", "name": "assessorEmail", "label": "Assessor email",
             "type": "email", "section": "visit", "order": 2, "width": "half",
             "validation": [{"type": "required"}, {"type": "email"}]},
            {"id": "rooms", "name": "rooms", "label": "Rooms to modify", "type": "multiselect",
             "section": "access", "order": 1,
             "options": [{"value": "kitchen", "label": "Kitchen"},
                         {"value": "bathroom", "label": "Bathroom"}]},
            {"id": "bathroomNotes", "name": "bathroomNotes", "label": "Bathroom notes",
             "type": "textarea", "section": "access", "order": 2,
             "conditional": {"field": "rooms", "operator": "includes", "value": "bathroom"},
             "validation": [{"type": "required"}, {"type": "maxLength", "value": 200}]},
            {"id": "hasRamp", "name": "hasRamp", "label": "Ramp present", "type": "switch",
             "section": "access", "order": 3},
            {"id": "rampWidth", "name": "rampWidth", "label": "Ramp width (cm)", "type": "number",
             "section": "access", "order": 4,
             "validation": [{"type": "minValue", "value": 90,
                             "message": "Ramps must be at least 90 cm wide",
                             "condition": "formValues.hasRamp === true"}]},
            {"id": "photos", "name": "photos", "label": "Photos", "type": "file",
             "section": "attachments", "multiple": True},
            {"id": "signature", "name": "signature", "label": "Signature", "type": "signature",
             "section": "attachments"},
        ],
    }


class TestFieldScenarios:
    """Scenarios for a single field and a conditional pair."""

    email_field = {
        "id": "email", "name": "email", "type": "email", "section": "main",
        "validation": [{"type": "required"}, {"type": "email"}],
    }

    def make_form(self, fields):
        return FormMetadata.from_dict({
            "id": "scenario", "title": "Scenario",
            "sections": [{"id": "main", "title": "Main"}],
            "fields": fields,
        })

    def test_required_checked_before_email(self):
        """Empty email reports the required rule."""
        form = self.make_form([self.email_field])
        assert validate_field(form.fields[0], {"email": ""}) == "This field is required"

    def test_invalid_email(self):
        """Malformed email reports the email rule."""
        form = self.make_form([self.email_field])
        assert validate_field(form.fields[0], {"email": "not-an-email"}) == "Invalid email address"

    def test_hidden_field_excluded(self):
        """A field hidden by its conditional is neither rendered nor validated."""
        form = self.make_form([
            {"id": "a", "name": "A", "type": "radio", "section": "main",
             "options": [{"value": "yes", "label": "Yes"}, {"value": "no", "label": "No"}]},
            {"id": "b", "name": "B", "type": "text", "section": "main",
             "conditional": {"field": "A", "operator": "equals", "value": "yes"},
             "validation": [{"type": "required"}]},
        ])
        values = {"A": "no"}
        assert validate_form(form, values).errors == {}
        session = FormSession(form, initial_values=values)
        assert session.render().get_field("B") is None

    def test_conditional_rule_skipped(self):
        """A rule whose condition is false is skipped entirely."""
        form = self.make_form([
            {"id": "a", "name": "A", "type": "switch", "section": "main"},
            {"id": "n", "name": "n", "type": "number", "section": "main",
             "validation": [{"type": "minValue", "value": 10,
                             "condition": "formValues.A === true"}]},
        ])
        assert validate_form(form, {"A": False, "n": 5}).errors == {}
        assert validate_form(form, {"A": True, "n": 5}).errors == {"n": "Minimum value is 10"}


class TestHomeAssessmentFlow:
    """Fill in and submit a complete assessment."""

    def test_full_flow(self):
        """Should guide a user from an empty form to a submitted one."""
        registry = FormRegistry()
        registry.register_forms([FormMetadata.from_dict(home_assessment_document())])
        metadata = registry.get_client_specific_metadata("home_assessment", ClientType.FDF)

        emitter = EventEmitter()
        events = []
        emitter.on_any(events.append)
        submissions = []
        drafts = []
        session = FormSession(
            metadata,
            on_submit=lambda values: submissions.append(values) or "submission-1",
            on_save_draft=drafts.append,
            emitter=emitter,
        )

        rendered = session.render()
        assert [s.id for s in rendered.sections] == ["visit", "access", "attachments"]
        assert rendered.field_names == ["visitDate", "assessorEmail", "rooms", "hasRamp", "rampWidth"]
        assert rendered.get_field("visitDate").width_class == "col-span-12 md:col-span-6"
        assert rendered.get_field("visitDate").control.display_text == "Pick a date"
        assert [a.name for a in rendered.actions] == ["save_draft", "submit"]

        result = session.submit()
        assert result.submitted is False
        assert result.errors == {
            "visitDate": "This field is required",
            "assessorEmail": "This field is required",
        }
        assert session.render().get_field("assessorEmail").control.invalid is True

        session.set_value("visitDate", "2026-10-17")
        session.set_value("assessorEmail", "assessor@barakatna.ae")
        session.toggle_option("rooms", "bathroom", True)
        assert "bathroomNotes" in session.render().field_names

        session.set_value("hasRamp", True)
        session.set_input("rampWidth", "75")
        session.save_draft()
        assert drafts[-1]["rampWidth"] == 75

        result = session.submit()
        assert result.errors == {
            "bathroomNotes": "This field is required",
            "rampWidth": "Ramps must be at least 90 cm wide",
        }

        session.set_value("bathroomNotes", "Install grab bars beside the toilet")
        session.set_input("rampWidth", "120")
        session.toggle_section("attachments")
        rendered = session.render()
        assert rendered.get_field("signature").control.kind == "unsupported"
        assert rendered.get_field("visitDate").control.display_text == "October 17th, 2026"

        result = session.submit()
        assert result.submitted is True
        assert result.result == "submission-1"
        assert submissions == [{
            "visitDate": "2026-10-17",
            "assessorEmail": "assessor@barakatna.ae",
            "rooms": ["bathroom"],
            "hasRamp": True,
            "rampWidth": 120,
            "bathroomNotes": "Install grab bars beside the toilet",
        }]

        types = [e.type for e in events]
        assert types[0] == EventType.FORM_LOADED
        assert types[-1] == EventType.FORM_SUBMITTED
        assert types.count(EventType.VALIDATION_FAILED) == 2
        assert types.count(EventType.DRAFT_SAVED) == 1

    def test_unchecking_hides_and_skips(self):
        """Should drop a field from validation once its trigger is removed."""
        session = FormSession(
            FormMetadata.from_dict(home_assessment_document()),
            on_submit=lambda values: None,
            initial_values={"visitDate": "2026-10-17", "assessorEmail": "a@barakatna.ae"},
        )
        session.toggle_option("rooms", "bathroom", True)
        assert session.submit().errors == {"bathroomNotes": "This field is required"}
        session.toggle_option("rooms", "bathroom", False)
        assert session.submit().submitted is True

    def test_metadata_survives_serialization(self):
        """Should behave the same after a to_dict/from_dict cycle."""
        form = FormMetadata.from_dict(home_assessment_document())
        reloaded = FormMetadata.from_dict(form.to_dict())
        values = {"rooms": ["bathroom"], "hasRamp": True, "rampWidth": 10}
        assert validate_form(reloaded, values).errors == validate_form(form, values).errors
