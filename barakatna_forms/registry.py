"""Form registry.

The registry maps form IDs to their registry entries (module, client types,
role permissions, dependencies) and metadata, and derives client-specific
variants of a form's metadata.

Permission lookups here are plain data queries for menus and listings; the
registry does not enforce access control.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Union

from barakatna_forms.metadata import FormDependency, FormField, FormMetadata
from barakatna_forms.types import ClientType, FormModule, FormPermission

logger = logging.getLogger(__name__)

WILDCARD_ROLE = "*"

_FORM_OVERRIDE_EXCLUDED = ("id", "fields", "fieldVisibility")


@dataclass(frozen=True)
class FormRegistryEntry:
    """Registry listing for a form.

    Attributes:
        id: Form ID, shared with the form's metadata
        title: Display title
        description: Display description
        module: Platform module the form belongs to
        client_types: Client programs the form serves
        permissions: Permission name to permitted role names ("*" for any)
        dependencies: References to other forms
        version: Metadata version
        path: Application route of the form
        icon: Optional icon name
        is_active: Whether the form is offered to users
    """
    id: str
    title: str
    module: Union[FormModule, str]
    path: str
    description: str = ""
    client_types: List[ClientType] = field(default_factory=list)
    permissions: Dict[str, List[str]] = field(default_factory=dict)
    dependencies: List[FormDependency] = field(default_factory=list)
    version: str = "1.0"
    icon: Optional[str] = None
    is_active: bool = True

    @classmethod
    def for_metadata(cls, metadata: FormMetadata, path: str, icon: Optional[str] = None) -> "FormRegistryEntry":
        """Build an entry mirroring a form's metadata."""
        return cls(
            id=metadata.id,
            title=metadata.title,
            description=metadata.description,
            module=metadata.module or "",
            path=path,
            client_types=list(metadata.client_types),
            permissions={k: list(v) for k, v in metadata.permissions.items()},
            dependencies=list(metadata.dependencies),
            version=metadata.version,
            icon=icon,
            is_active=metadata.is_active,
        )


def _permission_key(permission: Union[FormPermission, str]) -> str:
    return permission.value if isinstance(permission, FormPermission) else permission


def _client_key(client_type: Union[ClientType, str]) -> str:
    return client_type.value if isinstance(client_type, ClientType) else client_type


def _field_from_overrides(form_field: FormField, overrides: Dict[str, Any]) -> FormField:
    """Merge a camelCase partial field document over a field."""
    merged = form_field.to_dict()
    merged.update({k: v for k, v in overrides.items() if k not in ("id", "name", "type")})
    merged["clientTypeOverrides"] = form_field.client_type_overrides
    return FormField.from_dict(merged)


class FormRegistry:
    """Central registry of forms.

    Examples:
        >>> form = FormMetadata.from_dict({"id": "case_creation", "title": "Create Case",
        ...                                "module": "case", "sections": [], "fields": []})
        >>> registry = FormRegistry()
        >>> registry.register_form(FormRegistryEntry.for_metadata(form, "/cases/new"), form)
        >>> [e.id for e in registry.get_forms_by_module(FormModule.CASE)]
        ['case_creation']
    """

    def __init__(self):
        self._entries: Dict[str, FormRegistryEntry] = {}
        self._metadata: Dict[str, FormMetadata] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, form_id: object) -> bool:
        return form_id in self._entries

    def register_form(self, entry: FormRegistryEntry, metadata: FormMetadata) -> None:
        """Register a form, replacing any form with the same ID."""
        if entry.id in self._entries:
            logger.warning("Form with ID %s already exists in registry. Overwriting.", entry.id)
        self._entries[entry.id] = entry
        self._metadata[entry.id] = metadata

    def register_forms(self, forms: Iterable[FormMetadata], path_prefix: str = "/forms") -> None:
        """Register several forms with entries derived from their metadata."""
        for metadata in forms:
            self.register_form(FormRegistryEntry.for_metadata(metadata, f"{path_prefix}/{metadata.id}"), metadata)

    def get_all_forms(self) -> List[FormRegistryEntry]:
        return list(self._entries.values())

    def get_form(self, form_id: str) -> Optional[FormRegistryEntry]:
        return self._entries.get(form_id)

    def get_form_metadata(self, form_id: str) -> Optional[FormMetadata]:
        return self._metadata.get(form_id)

    def get_forms_by_module(self, module: Union[FormModule, str]) -> List[FormRegistryEntry]:
        return [e for e in self._entries.values() if e.module == module]

    def get_forms_by_client_type(self, client_type: Union[ClientType, str]) -> List[FormRegistryEntry]:
        return [e for e in self._entries.values() if client_type in e.client_types]

    def get_forms_by_permission_and_role(
        self, permission: Union[FormPermission, str], role: str
    ) -> List[FormRegistryEntry]:
        """Forms granting a permission to a role (or to every role)."""
        key = _permission_key(permission)
        return [
            e
            for e in self._entries.values()
            if role in e.permissions.get(key, []) or WILDCARD_ROLE in e.permissions.get(key, [])
        ]

    def has_form_permission(
        self, form_id: str, permission: Union[FormPermission, str], roles: Iterable[str]
    ) -> bool:
        """Whether any of the roles holds a permission on a form."""
        entry = self._entries.get(form_id)
        if entry is None:
            return False
        permitted = entry.permissions.get(_permission_key(permission), [])
        return any(role in permitted or WILDCARD_ROLE in permitted for role in roles)

    def get_form_dependents(
        self, form_id: str, client_type: Optional[ClientType] = None
    ) -> List[FormRegistryEntry]:
        """Forms that depend on ``form_id``.

        With a client type, dependencies restricted to other client types are
        ignored and the client's metadata overrides are consulted as well.
        """
        dependents: List[FormRegistryEntry] = []
        for entry in self._entries.values():
            if any(d.form_id == form_id and d.applies_to(client_type) for d in entry.dependencies):
                dependents.append(entry)
                continue
            if client_type is None:
                continue
            metadata = self._metadata.get(entry.id)
            overrides = (metadata.client_type_overrides if metadata else {}).get(_client_key(client_type), {})
            if any(d.get("formId") == form_id for d in overrides.get("dependencies", [])):
                dependents.append(entry)
        return dependents

    def get_form_dependencies(self, form_id: str) -> List[FormRegistryEntry]:
        """Registered forms that ``form_id`` depends on."""
        entry = self._entries.get(form_id)
        if entry is None:
            return []
        found = (self._entries.get(d.form_id) for d in entry.dependencies)
        return [e for e in found if e is not None]

    def get_client_specific_metadata(self, form_id: str, client_type: ClientType) -> Optional[FormMetadata]:
        """A form's metadata as seen by one client program.

        Returns None when the form is unknown or does not serve the client
        type. Otherwise applies, in order: the form-level overrides for the
        client, each field's own overrides for the client, and the
        ``fieldVisibility`` block (``hidden``, ``showOnlyListed``,
        ``required``, ``optional``). Field-level overrides apply even when
        the form has no form-level override for the client. A form-level
        ``fields`` entry never replaces the form's fields.
        """
        base = self._metadata.get(form_id)
        if base is None or client_type not in base.client_types:
            return None

        key = _client_key(client_type)
        overrides: Dict[str, Any] = base.client_type_overrides.get(key) or {}
        if not overrides:
            if any(key in f.client_type_overrides for f in base.fields):
                return replace(base, fields=[self._apply_field_overrides(f, key) for f in base.fields])
            return base

        # Override "fields" entries are partial documents; fields always come from the base form
        document = base.to_dict()
        document.update({k: v for k, v in overrides.items() if k not in _FORM_OVERRIDE_EXCLUDED})
        document["clientTypeOverrides"] = base.client_type_overrides
        metadata = FormMetadata.from_dict(document)
        fields = [self._apply_field_overrides(f, key) for f in base.fields]

        visibility = overrides.get("fieldVisibility")
        if visibility:
            hidden = set(visibility.get("hidden", []))
            required = set(visibility.get("required", []))
            optional = set(visibility.get("optional", []))
            only_listed = visibility.get("showOnlyListed", False)

            fields = [
                f
                for f in fields
                if f.name not in hidden and (not only_listed or f.name in required or f.name in optional)
            ]
            fields = [
                replace(f, required=True) if f.name in required
                else replace(f, required=False) if f.name in optional
                else f
                for f in fields
            ]

        return replace(metadata, fields=fields)

    @staticmethod
    def _apply_field_overrides(form_field: FormField, client_key: str) -> FormField:
        field_overrides = form_field.client_type_overrides.get(client_key)
        if not field_overrides:
            return form_field
        return _field_from_overrides(form_field, field_overrides)


__all__ = [
    "WILDCARD_ROLE",
    "FormRegistryEntry",
    "FormRegistry",
]
