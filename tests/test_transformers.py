import pytest

from constants import AnnouncementType, FeedSource, PriorityLevel
from data_transformers import FDATransformer, FeedParseError, OpenFDATransformer, SECTransformer, get_transformer


# ---------------------------------------------------------------------------
# FDA RSS
# ---------------------------------------------------------------------------


def test_fda_rss_items_become_drafts(fda_rss):
    feed = FDATransformer().transform(fda_rss, FeedSource.FDA_PRESS_RELEASE, "https://www.fda.gov/rss.xml")

    assert feed.count == 2
    assert feed.skipped_entries == 0
    first = feed.drafts[0]
    assert first.source == FeedSource.FDA_PRESS_RELEASE
    assert first.title == "FDA Approves First Treatment for Rare Liver Disease"
    assert first.source_native_id.endswith("fda-approves-first-treatment-rare-liver-disease")
    assert first.announcement_type == AnnouncementType.DRUG_APPROVAL
    assert first.heuristic_priority == PriorityLevel.HIGH
    assert "Helix Biosciences" in first.company_name
    assert "<p>" not in first.description
    assert "Livrexa" in first.description
    assert first.published_at.tzinfo is None


def test_fda_entry_uses_feed_timestamp_not_ingestion_time(fda_rss):
    feed = FDATransformer().transform(fda_rss, FeedSource.FDA_PRESS_RELEASE)
    recent, old = feed.drafts

    delta_hours = (recent.published_at - old.published_at).total_seconds() / 3600
    assert 27.9 < delta_hours < 28.1
    assert "published_missing" not in recent.raw_payload


def test_fda_missing_title_and_date_get_placeholders():
    document = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>MedWatch</title>
  <item>
    <link>https://www.fda.gov/safety/medwatch/alert-1</link>
    <description>Safety communication about an infusion pump.</description>
  </item>
</channel></rss>"""

    feed = FDATransformer().transform(document, FeedSource.FDA_MEDWATCH)

    draft = feed.drafts[0]
    assert draft.title == "FDA Announcement"
    assert draft.source_native_id == "https://www.fda.gov/safety/medwatch/alert-1"
    assert draft.raw_payload["published_missing"] is True
    assert draft.announcement_type == AnnouncementType.SAFETY_ALERT


def test_fda_entry_without_guid_or_link_gets_stable_hash_id():
    document = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>MedWatch</title>
  <item><title>Recall of Lot 42</title><pubDate>Mon, 06 May 2024 10:00:00 EDT</pubDate></item>
</channel></rss>"""

    first = FDATransformer().transform(document, FeedSource.FDA_MEDWATCH).drafts[0]
    second = FDATransformer().transform(document, FeedSource.FDA_MEDWATCH).drafts[0]

    assert first.source_native_id.startswith("sha1:")
    assert first.source_native_id == second.source_native_id
    # 10:00 EDT is 14:00 UTC
    assert first.published_at.hour == 14


def test_malformed_document_raises_feed_parse_error():
    with pytest.raises(FeedParseError):
        FDATransformer().transform("<html><body>Service Unavailable", FeedSource.FDA_MEDWATCH)


def test_atom_document_rejected_by_rss_transformer(sec_atom):
    with pytest.raises(FeedParseError):
        FDATransformer().transform(sec_atom, FeedSource.FDA_PRESS_RELEASE)


# ---------------------------------------------------------------------------
# SEC Atom
# ---------------------------------------------------------------------------


def test_sec_atom_entries_become_drafts(sec_atom):
    feed = SECTransformer().transform(sec_atom, FeedSource.SEC_EDGAR)

    assert feed.count == 2
    filing = feed.drafts[0]
    assert filing.source == FeedSource.SEC_EDGAR
    assert filing.form_type == "8-K"
    assert filing.company_name == "Acme Corp"
    assert filing.cik == "0000320193"
    assert filing.accession_number == "0000320193-24-000123"
    assert filing.source_native_id == "0000320193-24-000123"
    assert filing.announcement_type == AnnouncementType.MERGER_ACQUISITION
    assert filing.heuristic_priority == PriorityLevel.HIGH

    quarterly = feed.drafts[1]
    assert quarterly.form_type == "10-Q"
    assert quarterly.announcement_type == AnnouncementType.QUARTERLY_REPORT
    assert quarterly.heuristic_priority == PriorityLevel.MEDIUM


def test_sec_entry_without_title_gets_placeholder():
    document = """<?xml version="1.0"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Latest Filings</title>
  <id>urn:feed</id>
  <updated>2024-05-06T12:00:00-04:00</updated>
  <entry>
    <id>urn:tag:sec.gov,2008:accession-number=0001234567-24-000001</id>
    <link rel="alternate" href="https://www.sec.gov/Archives/edgar/data/1234567/000123456724000001/0001234567-24-000001-index.htm"/>
    <updated>2024-05-06T12:00:00-04:00</updated>
    <category term="S-1" label="form type"/>
  </entry>
</feed>"""

    draft = SECTransformer().transform(document, FeedSource.SEC_EDGAR).drafts[0]

    assert draft.title == "SEC Filing"
    assert draft.company_name is None
    assert draft.form_type == "S-1"
    assert draft.announcement_type == AnnouncementType.STOCK_OFFERING
    assert draft.published_at.hour == 16


def test_rss_document_rejected_by_atom_transformer(fda_rss):
    with pytest.raises(FeedParseError):
        SECTransformer().transform(fda_rss, FeedSource.SEC_EDGAR)


def test_get_transformer_by_source():
    assert isinstance(get_transformer(FeedSource.FDA_MEDWATCH), FDATransformer)
    assert isinstance(get_transformer(FeedSource.OPENFDA_RECALL), OpenFDATransformer)
    assert isinstance(get_transformer(FeedSource.SEC_EDGAR), SECTransformer)


def test_iter_drafts_yields_one_draft_at_a_time():
    document = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Press</title>
  <item><title>First</title><link>https://www.fda.gov/a</link></item>
  <item><title>Second</title><link>https://www.fda.gov/b</link></item>
</channel></rss>"""
    transformer = FDATransformer()
    drafts = transformer.iter_drafts(document, FeedSource.FDA_PRESS_RELEASE)

    assert next(drafts).title == "First"
    assert next(drafts).title == "Second"
    with pytest.raises(StopIteration):
        next(drafts)


# ---------------------------------------------------------------------------
# openFDA JSON
# ---------------------------------------------------------------------------


def test_openfda_drug_approval_uses_structured_sponsor(openfda_drugs):
    feed = OpenFDATransformer().transform(openfda_drugs, FeedSource.OPENFDA_DRUG_APPROVAL)

    [draft] = feed.drafts
    assert draft.source_native_id == "fda-drug-NDA215000"
    assert draft.company_name == "HELIX BIOSCIENCES INC"
    assert draft.product_name == "LIVREXA"
    assert draft.title == "FDA approves LIVREXA (HELIX BIOSCIENCES INC)"
    assert draft.announcement_type == AnnouncementType.DRUG_APPROVAL
    assert draft.heuristic_priority == PriorityLevel.HIGH
    assert draft.link.endswith("ApplNo=215000")
    assert draft.raw_payload["submission"]["submission_status"] == "AP"
    assert (draft.published_at.hour, draft.published_at.minute) == (0, 0)


def test_openfda_recall_maps_class_to_priority(openfda_recalls):
    feed = OpenFDATransformer().transform(openfda_recalls, FeedSource.OPENFDA_RECALL)

    class_one, class_three = feed.drafts
    assert class_one.source_native_id == "fda-safety-D-0101-2025"
    assert class_one.company_name == "Acme Pharmaceuticals Inc."
    assert class_one.product_name == "Widgetol Tablets"
    assert class_one.classification_code == "Class I"
    assert class_one.announcement_type == AnnouncementType.SAFETY_ALERT
    assert class_one.heuristic_priority == PriorityLevel.HIGH
    assert class_one.description == "Microbial contamination found in one lot."
    assert class_three.heuristic_priority == PriorityLevel.LOW
    assert class_one.published_at > class_three.published_at


def test_openfda_device_clearance(openfda_510k):
    [draft] = OpenFDATransformer().transform(openfda_510k, FeedSource.OPENFDA_DEVICE_CLEARANCE).drafts

    assert draft.source_native_id == "fda-device-K251234"
    assert draft.company_name == "Cardiowave Medical, Inc."
    assert draft.classification_code == "510(k)"
    assert draft.announcement_type == AnnouncementType.DEVICE_APPROVAL
    assert draft.heuristic_priority == PriorityLevel.MEDIUM
    assert draft.description == "510(k) K251234: Substantially Equivalent"
    assert draft.link.endswith("ID=K251234")


def test_openfda_record_without_identifier_is_skipped():
    document = '{"results": [{"recalling_firm": "No Number Inc."}, "not-an-object"]}'

    feed = OpenFDATransformer().transform(document, FeedSource.OPENFDA_RECALL)

    assert feed.count == 0
    assert feed.skipped_entries == 2


def test_openfda_missing_date_falls_back_to_now():
    document = '{"results": [{"k_number": "K250001", "applicant": "Acme Devices"}]}'

    [draft] = OpenFDATransformer().transform(document, FeedSource.OPENFDA_DEVICE_CLEARANCE).drafts

    assert draft.raw_payload["published_missing"] is True


@pytest.mark.parametrize("document", [
    "<html>Service unavailable</html>",
    "[]",
    '{"error": {"code": "NOT_FOUND", "message": "No matches found!"}}',
    '{"results": {"k_number": "K1"}}',
])
def test_openfda_unusable_documents_raise(document):
    with pytest.raises(FeedParseError):
        OpenFDATransformer().transform(document, FeedSource.OPENFDA_DEVICE_CLEARANCE)
