from __future__ import annotations

import logging
from typing import Iterable, Optional

from core.models import PARTNER_ROLES, Material, Partner
from core.utils import new_id

logger = logging.getLogger(__name__)

_PARTNER_FIELDS = {"code", "name", "roles", "document", "email", "phone", "address", "contact_person"}
_MATERIAL_FIELDS = {"code", "name", "ncm"}


def normalize_code(value) -> str:
    """Codes are exactly three digits, e.g. '012'. Shorter input is not padded."""
    s = str(value if value is not None else "").strip()
    if len(s) != 3 or not s.isdigit():
        raise ValueError("Code must have exactly 3 digits (e.g. 012).")
    return s


def _normalize_roles(roles: Iterable[str]) -> set[str]:
    if isinstance(roles, str):
        roles = [r for r in roles.split(",")]
    out = {str(r).strip().lower() for r in roles if str(r).strip()}
    if not out:
        raise ValueError("A partner needs at least one role.")
    unknown = out - set(PARTNER_ROLES)
    if unknown:
        raise ValueError(f"Unknown partner role(s): {', '.join(sorted(unknown))}.")
    return out


def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def _name(v) -> str:
    s = str(v or "").strip()
    if not s:
        raise ValueError("Name is required.")
    return s


def partner_in_use(store, partner: Partner) -> bool:
    return any(
        b.partner_id == partner.id
        or b.partner_code == partner.code
        or b.service_provider_id == partner.id
        or b.customer_id == partner.id
        for b in store.batches
    )


def material_in_use(store, material: Material) -> bool:
    return any(b.material_code == material.code for b in store.batches)


# -------------------------
# Partners
# -------------------------

def list_partners(store, role: Optional[str] = None) -> list[Partner]:
    rows = [p for p in store.partners if role is None or p.has_role(role)]
    return sorted(rows, key=lambda p: p.code)


def add_partner(
    store,
    *,
    code: str,
    name: str,
    roles: Iterable[str],
    document: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    contact_person: Optional[str] = None,
) -> Partner:
    code = normalize_code(code)
    if store.partner_by_code(code):
        raise ValueError("This partner code is already in use.")

    partner = Partner(
        id=new_id(),
        code=code,
        name=_name(name),
        roles=_normalize_roles(roles),
        document=_clean(document),
        email=_clean(email),
        phone=_clean(phone),
        address=_clean(address),
        contact_person=_clean(contact_person),
    )
    store.partners.append(partner)
    logger.info("Partner %s (%s) added", partner.code, partner.name)
    return partner


def update_partner(store, partner_id: str, **fields) -> Partner:
    partner = store.partner(partner_id)
    if not partner:
        raise ValueError("Partner not found.")
    unknown = set(fields) - _PARTNER_FIELDS
    if unknown:
        raise ValueError(f"Unknown partner field(s): {', '.join(sorted(unknown))}.")

    changes = dict(fields)
    if "code" in changes:
        code = normalize_code(changes["code"])
        other = store.partner_by_code(code)
        if other and other.id != partner.id:
            raise ValueError("This partner code is already in use by another partner.")
        if code != partner.code and partner_in_use(store, partner):
            raise ValueError("Partner code cannot change while batches reference it.")
        changes["code"] = code
    if "name" in changes:
        changes["name"] = _name(changes["name"])
    if "roles" in changes:
        changes["roles"] = _normalize_roles(changes["roles"])
    for key in ("document", "email", "phone", "address", "contact_person"):
        if key in changes:
            changes[key] = _clean(changes[key])

    for key, value in changes.items():
        setattr(partner, key, value)
    logger.info("Partner %s updated", partner.code)
    return partner


def delete_partner(store, partner_id: str) -> None:
    partner = store.partner(partner_id)
    if not partner:
        raise ValueError("Partner not found.")
    if partner_in_use(store, partner):
        logger.warning("Refused to delete partner %s: referenced by batches", partner.code)
        raise ValueError(f"Partner {partner.code} is referenced by existing batches and cannot be deleted.")
    store.partners.remove(partner)
    logger.info("Partner %s deleted", partner.code)


# -------------------------
# Materials
# -------------------------

def list_materials(store) -> list[Material]:
    return sorted(store.materials, key=lambda m: m.code)


def add_material(store, *, code: str, name: str, ncm: Optional[str] = None) -> Material:
    code = normalize_code(code)
    if store.material_by_code(code):
        raise ValueError("This material code is already in use.")

    material = Material(id=new_id(), code=code, name=_name(name), ncm=_clean(ncm))
    store.materials.append(material)
    logger.info("Material %s (%s) added", material.code, material.name)
    return material


def update_material(store, material_id: str, **fields) -> Material:
    material = store.material(material_id)
    if not material:
        raise ValueError("Material not found.")
    unknown = set(fields) - _MATERIAL_FIELDS
    if unknown:
        raise ValueError(f"Unknown material field(s): {', '.join(sorted(unknown))}.")

    changes = dict(fields)
    if "code" in changes:
        code = normalize_code(changes["code"])
        other = store.material_by_code(code)
        if other and other.id != material.id:
            raise ValueError("This material code is already in use by another material.")
        if code != material.code and material_in_use(store, material):
            raise ValueError("Material code cannot change while batches reference it.")
        changes["code"] = code
    if "name" in changes:
        changes["name"] = _name(changes["name"])
    if "ncm" in changes:
        changes["ncm"] = _clean(changes["ncm"])

    for key, value in changes.items():
        setattr(material, key, value)
    logger.info("Material %s updated", material.code)
    return material


def delete_material(store, material_id: str) -> None:
    material = store.material(material_id)
    if not material:
        raise ValueError("Material not found.")
    if material_in_use(store, material):
        logger.warning("Refused to delete material %s: referenced by batches", material.code)
        raise ValueError(f"Material {material.code} is referenced by existing batches and cannot be deleted.")
    store.materials.remove(material)
    logger.info("Material %s deleted", material.code)
