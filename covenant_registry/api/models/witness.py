"""Witness API request/response models.

Request fields are all optional at the schema level: missing required
fields are reported together by the registration validator as a single
MissingFieldError, with the request field names.
"""

from __future__ import annotations

from pydantic import Field

from covenant_registry.api.models.base import CamelModel, DateTimeWithZ
from covenant_registry.domain.models.readiness import ReadinessReport
from covenant_registry.domain.models.witness import NotificationPreferences, Witness


class NotificationPreferencesModel(CamelModel):
    """Broadcast opt-in flags."""

    daily_auctions: bool = True
    milestones: bool = True
    emergency: bool = True

    def to_domain(self) -> NotificationPreferences:
        return NotificationPreferences(
            daily_auctions=self.daily_auctions,
            milestones=self.milestones,
            emergency=self.emergency,
        )

    @classmethod
    def from_domain(cls, preferences: NotificationPreferences) -> NotificationPreferencesModel:
        return cls(**preferences.to_dict())


class RegisterWitnessRequest(CamelModel):
    """Request to register as a covenant witness.

    Attributes:
        identifier: Registrant address, ``0x`` + 40 hex characters.
        contact: Delivery address for notifications (e.g. email).
        proof_hash: Opaque proof of commitment (e.g. transaction hash).
        block_ref: Optional numeric proof reference (e.g. block number).
        signed_at: ISO-8601 time the registrant signed.
        display_name: Optional public name (e.g. ENS name).
        notification_preferences: Optional opt-in flags.
    """

    identifier: str | None = None
    contact: str | None = None
    proof_hash: str | None = None
    block_ref: int | None = None
    signed_at: str | None = None
    display_name: str | None = None
    notification_preferences: NotificationPreferencesModel | None = None


class WitnessSummaryModel(CamelModel):
    """Public witness projection. Never carries the contact address."""

    identifier: str
    display_name: str | None = None
    sequence_number: int = Field(..., ge=1)
    proof_hash: str
    block_ref: int
    signed_at: DateTimeWithZ
    status: str
    created_at: DateTimeWithZ

    @classmethod
    def from_witness(cls, witness: Witness) -> WitnessSummaryModel:
        return cls(
            identifier=witness.identifier,
            display_name=witness.display_name,
            sequence_number=witness.sequence_number,
            proof_hash=witness.proof.proof_hash,
            block_ref=witness.proof.block_ref,
            signed_at=witness.proof.signed_at,
            status=witness.status.value,
            created_at=witness.created_at,
        )


class WitnessDetailModel(WitnessSummaryModel):
    """Witness projection returned to the registrant themselves."""

    notification_preferences: NotificationPreferencesModel

    @classmethod
    def from_witness(cls, witness: Witness) -> WitnessDetailModel:
        return cls(
            identifier=witness.identifier,
            display_name=witness.display_name,
            sequence_number=witness.sequence_number,
            proof_hash=witness.proof.proof_hash,
            block_ref=witness.proof.block_ref,
            signed_at=witness.proof.signed_at,
            status=witness.status.value,
            created_at=witness.created_at,
            notification_preferences=NotificationPreferencesModel.from_domain(
                witness.notification_preferences
            ),
        )


class RegisterWitnessResponse(CamelModel):
    success: bool = True
    witness: WitnessDetailModel
    milestones_fired: list[int] = Field(default_factory=list)
    message: str


class RegistryStatsModel(CamelModel):
    """Live launch readiness."""

    total_witnesses: int
    target_witnesses: int
    percent_complete: int
    days_remaining: int
    tier: str
    urgent: bool
    launch_ready: bool
    witnesses_needed: int
    daily_rate_needed: int
    recent_witnesses: list[WitnessSummaryModel] = Field(default_factory=list)

    @classmethod
    def from_report(
        cls, report: ReadinessReport, recent: list[Witness]
    ) -> RegistryStatsModel:
        return cls(
            **report.to_dict(),
            recent_witnesses=[WitnessSummaryModel.from_witness(w) for w in recent],
        )


class WitnessListResponse(CamelModel):
    witnesses: list[WitnessSummaryModel]
    total: int
    offset: int
    limit: int
    stats: RegistryStatsModel | None = None


class UpdatePreferencesResponse(CamelModel):
    success: bool = True
    witness: WitnessDetailModel


class ErrorResponse(CamelModel):
    """Error body: ``{error, detail, fields?}``."""

    error: str
    detail: str
    fields: list[str] | None = None
