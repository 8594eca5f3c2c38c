"""
openFDA Transformer - JSON search results from api.fda.gov.

Each element of `results` becomes one AnnouncementDraft. Unlike the RSS
feeds, openFDA records name the issuer in a structured field
(sponsor_name / recalling_firm / applicant), so company_name is taken
from the record instead of from title heuristics.

Dates are day-precision "YYYYMMDD" strings and land at midnight UTC.
"""
import json
import re
from typing import Any, Dict, List, Optional

from constants import AnnouncementType, FeedSource, PriorityLevel
from data_transformers.base import BaseTransformer, FeedParseError
from data_transformers.heuristics import fda_priority
from data_transformers.models import AnnouncementDraft


DRUGS_AT_FDA_URL = "https://www.accessdata.fda.gov/scripts/cder/daf/index.cfm?event=overview.process&ApplNo={}"
PMN_URL = "https://www.accessdata.fda.gov/scripts/cdrh/cfdocs/cfpmn/pmn.cfm?ID={}"

RECALL_PRIORITY = {
    "Class I": PriorityLevel.HIGH,
    "Class II": PriorityLevel.MEDIUM,
    "Class III": PriorityLevel.LOW,
}


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = re.sub(r"\s+", " ", value).strip()
    return value or None


class OpenFDATransformer(BaseTransformer):
    """
    Transform openFDA records to AnnouncementDraft.

    The FeedSource picks the record shape: drug approvals, drug
    enforcement (recalls) or device 510(k) clearances.
    """

    expected_format = "json"

    @property
    def source_name(self) -> str:
        return "openfda"

    def parse(self, document: str) -> Dict[str, Any]:
        """
        Decode an openFDA search response.

        Raises:
            FeedParseError: not JSON, an openFDA error body, or no results list
        """
        try:
            payload = json.loads(document)
        except ValueError as e:
            raise FeedParseError(f"Malformed openFDA response: {e}") from e

        if not isinstance(payload, dict):
            raise FeedParseError("openFDA response is not a JSON object")
        if "error" in payload and "results" not in payload:
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise FeedParseError(f"openFDA error: {message}")
        if not isinstance(payload.get("results", []), list):
            raise FeedParseError("openFDA 'results' is not a list")
        return payload

    def entries(self, parsed: Dict[str, Any]) -> List[Any]:
        return parsed.get("results", [])

    def normalize_entry(self, entry: Any, source: FeedSource) -> AnnouncementDraft:
        if not isinstance(entry, dict):
            raise ValueError("openFDA result is not an object")
        if source == FeedSource.OPENFDA_RECALL:
            return self._recall(entry, source)
        if source == FeedSource.OPENFDA_DEVICE_CLEARANCE:
            return self._device_clearance(entry, source)
        return self._drug_approval(entry, source)

    # ============================================================
    # RECORD SHAPES
    # ============================================================

    def _drug_approval(self, record: dict, source: FeedSource) -> AnnouncementDraft:
        application = _text(record.get("application_number"))
        if not application:
            raise ValueError("drug record without application_number")

        products = [p for p in record.get("products") or [] if isinstance(p, dict)]
        product = products[0] if products else {}
        drug_name = _text(product.get("brand_name")) or _text(product.get("generic_name"))
        sponsor = _text(record.get("sponsor_name"))

        approved = [
            s for s in record.get("submissions") or []
            if isinstance(s, dict) and s.get("submission_status") == "AP"
        ]
        latest = max(approved, key=lambda s: s.get("submission_status_date") or "", default=None)
        approval_date = latest.get("submission_status_date") if latest else None
        published_at, date_missing = self.resolve_published_at(approval_date)

        title = f"FDA approves {drug_name or application}"
        if sponsor:
            title = f"{title} ({sponsor})"

        details = [f"Application {application}"]
        if latest:
            submission = " ".join(
                str(latest[k]) for k in ("submission_type", "submission_number") if latest.get(k)
            )
            if submission:
                details.append(f"submission {submission}")
        for key in ("dosage_form", "route"):
            value = _text(product.get(key))
            if value:
                details.append(value.lower())
        description = self.clean_text(", ".join(details))

        raw_payload = self.entry_dict(record, "application_number", "sponsor_name")
        raw_payload["products"] = products[:1]
        if latest:
            raw_payload["submission"] = latest
        if date_missing:
            raw_payload["published_missing"] = True

        announcement_type = AnnouncementType.DRUG_APPROVAL
        return AnnouncementDraft(
            source=source,
            source_native_id=f"fda-drug-{application}",
            title=title,
            description=description,
            link=DRUGS_AT_FDA_URL.format(re.sub(r"\D", "", application)),
            published_at=published_at,
            announcement_type=announcement_type,
            heuristic_priority=fda_priority(title, description, announcement_type, source),
            company_name=sponsor,
            product_name=drug_name,
            raw_payload=raw_payload,
        )

    def _recall(self, record: dict, source: FeedSource) -> AnnouncementDraft:
        recall_number = _text(record.get("recall_number"))
        if not recall_number:
            raise ValueError("enforcement record without recall_number")

        firm = _text(record.get("recalling_firm"))
        product_description = _text(record.get("product_description")) or "product"
        # Descriptions run long (strengths, NDC codes); the first clause names the product
        product_name = product_description.split(",")[0][:100].strip()
        classification = _text(record.get("classification"))

        published_at, date_missing = self.resolve_published_at(
            record.get("report_date") or record.get("recall_initiation_date")
        )

        title = f"{firm or 'Firm'} recalls {product_name}"
        if classification:
            title = f"{title} ({classification})"

        raw_payload = self.entry_dict(
            record,
            "recall_number",
            "recalling_firm",
            "classification",
            "status",
            "report_date",
            "recall_initiation_date",
            "distribution_pattern",
            "product_quantity",
            "product_description",
        )
        if date_missing:
            raw_payload["published_missing"] = True

        return AnnouncementDraft(
            source=source,
            source_native_id=f"fda-safety-{recall_number}",
            title=title,
            description=self.clean_text(record.get("reason_for_recall")),
            link=None,
            published_at=published_at,
            announcement_type=AnnouncementType.SAFETY_ALERT,
            heuristic_priority=RECALL_PRIORITY.get(classification, PriorityLevel.MEDIUM),
            company_name=firm,
            product_name=product_name,
            classification_code=classification,
            raw_payload=raw_payload,
        )

    def _device_clearance(self, record: dict, source: FeedSource) -> AnnouncementDraft:
        k_number = _text(record.get("k_number"))
        if not k_number:
            raise ValueError("510(k) record without k_number")

        applicant = _text(record.get("applicant"))
        device_name = _text(record.get("device_name"))
        published_at, date_missing = self.resolve_published_at(
            record.get("decision_date") or record.get("date_received")
        )

        title = f"FDA clears {device_name or k_number}"
        if applicant:
            title = f"{title} ({applicant})"
        decision = _text(record.get("decision_description")) or _text(record.get("decision"))
        description = f"510(k) {k_number}"
        if decision:
            description = f"{description}: {decision}"

        raw_payload = self.entry_dict(
            record,
            "k_number",
            "applicant",
            "device_name",
            "decision",
            "decision_date",
            "date_received",
            "product_code",
            "clearance_type",
            "review_advisory_committee",
        )
        if date_missing:
            raw_payload["published_missing"] = True

        return AnnouncementDraft(
            source=source,
            source_native_id=f"fda-device-{k_number}",
            title=title,
            description=self.clean_text(description),
            link=PMN_URL.format(k_number),
            published_at=published_at,
            announcement_type=AnnouncementType.DEVICE_APPROVAL,
            heuristic_priority=self._device_priority(record),
            company_name=applicant,
            product_name=device_name,
            classification_code="510(k)",
            raw_payload=raw_payload,
        )

    @staticmethod
    def _device_priority(record: dict) -> PriorityLevel:
        """Advisory-committee review or a novel clearance type escalates to high."""
        committee = _text(record.get("review_advisory_committee"))
        if committee and committee.upper() != "N/A":
            return PriorityLevel.HIGH
        clearance_type = _text(record.get("clearance_type")) or ""
        if "novel" in clearance_type.lower():
            return PriorityLevel.HIGH
        return PriorityLevel.MEDIUM
