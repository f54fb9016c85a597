"""
Member verification against HubSpot.

A caller is a member when their email matches a CRM contact that has at
least one deal in the configured win stage.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from diagnosis.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class MemberVerificationError(Exception):
    status_code = 500
    public_message = "Erro ao verificar matrícula. Tente novamente."


class CRMNotConfiguredError(MemberVerificationError):
    public_message = "Token HubSpot não configurado."


class ContactNotFoundError(MemberVerificationError):
    status_code = 404
    public_message = "Email não encontrado."


class NoActiveMembershipError(MemberVerificationError):
    status_code = 403
    public_message = "Usuário não encontrado."


class CRMUnavailableError(MemberVerificationError):
    status_code = 502


@dataclass
class MemberRecord:
    contact_id: str
    email: str
    name: str


def _is_win_stage(stage: str) -> bool:
    return stage == settings.HUBSPOT_WIN_STAGE or "won" in stage.lower()


async def verify_member(email: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> MemberRecord:
    """
    Look up a contact and its deals.

    Raises:
        CRMNotConfiguredError: no CRM token configured
        ContactNotFoundError: no contact with this email
        NoActiveMembershipError: contact has no won deal
        CRMUnavailableError: CRM request failed
    """
    if not settings.HUBSPOT_PRIVATE_TOKEN:
        raise CRMNotConfiguredError("HUBSPOT_PRIVATE_TOKEN is not set")

    headers = {
        "Authorization": f"Bearer {settings.HUBSPOT_PRIVATE_TOKEN}",
        "Content-Type": "application/json",
    }
    search = {
        "filterGroups": [{"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}],
        "properties": ["firstname", "lastname", "email"],
        "limit": 1,
    }

    try:
        async with httpx.AsyncClient(
            base_url=settings.HUBSPOT_API_URL, headers=headers, timeout=15.0, transport=transport
        ) as client:
            logger.info("Looking up %s in HubSpot", email)
            response = await client.post("/crm/v3/objects/contacts/search", json=search)
            response.raise_for_status()
            results = response.json().get("results") or []
            if not results:
                raise ContactNotFoundError(email)

            contact = results[0]
            properties = contact.get("properties") or {}
            full_name = f"{properties.get('firstname') or ''} {properties.get('lastname') or ''}".strip() or "Membro"

            deals = await client.get(f"/crm/v3/objects/contacts/{contact['id']}/associations/deals")
            deals.raise_for_status()
            for association in deals.json().get("results") or []:
                deal = await client.get(
                    f"/crm/v3/objects/deals/{association['id']}",
                    params={"properties": "dealstage,dealname"},
                )
                deal.raise_for_status()
                stage = (deal.json().get("properties") or {}).get("dealstage") or ""
                if _is_win_stage(stage):
                    logger.info("Won deal (%s) found for %s", stage, email)
                    return MemberRecord(contact_id=str(contact["id"]), email=email, name=full_name)
    except httpx.HTTPError as e:
        logger.error("HubSpot request failed for %s: %s", email, e)
        raise CRMUnavailableError(str(e)) from e

    logger.info("No won deal for %s", email)
    raise NoActiveMembershipError(email)
