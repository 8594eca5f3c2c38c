"""Shared fixtures for the regulatory catalyst tests."""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import itertools
import json
import re
import uuid
from datetime import timedelta, timezone
from email.utils import format_datetime

import pytest
import pytest_asyncio

from config import settings
from constants import FeedSource, AnnouncementType, PriorityLevel
from data_transformers.models import AnnouncementDraft
from database import Announcement, init_engine, close_engine, create_tables
from llm import LLMClient, LLMResponse, Message, get_llm_context
from utils.utcnow import utcnow


UUID_ID = re.compile(r'"id": "([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})"')


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh SQLite file per test, wired into the global session factory."""
    await close_engine()
    await init_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables()
    yield
    await close_engine()


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No sleeping between batches or retries; RSS-only FDA family unless a test opts in."""
    monkeypatch.setattr(settings, "COMPANY_FILTER_BATCH_DELAY", 0.0)
    monkeypatch.setattr(settings, "CLASSIFIER_BATCH_DELAY", 0.0)
    monkeypatch.setattr(settings, "FEED_RETRY_DELAY", 0.0)
    monkeypatch.setattr(settings, "LLM_API_KEY", "test-key")
    monkeypatch.setattr(settings, "OPENFDA_ENABLED", False)


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------


class FakeLLMClient(LLMClient):
    """
    In-process LLM double.

    `handler(task_type, prompt)` returns the response text or raises.
    """

    def __init__(self, handler):
        super().__init__(api_key="test-key", model="fake-model")
        self.handler = handler
        self.calls = []

    @staticmethod
    def ids_in(prompt):
        """Announcement ids embedded in a screening or classification prompt."""
        return UUID_ID.findall(prompt)

    def generate(self, prompt, system=None, max_tokens=3000, temperature=0.1):
        return self.chat([Message(role="user", content=prompt)], system, max_tokens, temperature)

    def chat(self, messages, system=None, max_tokens=3000, temperature=0.1):
        task_type = get_llm_context()["task_type"]
        prompt = messages[-1].content
        self.calls.append({"task_type": task_type, "prompt": prompt, "temperature": temperature})

        content = self.handler(task_type, prompt)
        response = LLMResponse(
            content=content,
            model=self.model,
            usage={"input_tokens": 100, "output_tokens": 50},
            latency_ms=5,
        )
        self.log_call(messages, system, response, max_tokens, temperature)
        return response


@pytest.fixture
def fake_llm():
    return FakeLLMClient


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------


_counter = itertools.count(1)


@pytest.fixture
def make_draft():
    """Factory for AnnouncementDraft with unique native ids."""

    def _make(**overrides):
        n = next(_counter)
        values = {
            "source": FeedSource.FDA_PRESS_RELEASE,
            "source_native_id": f"https://www.fda.gov/news-events/press-announcements/item-{n}",
            "title": f"FDA Approves Novel Drug Treatment {n}",
            "description": "The drug is the first approved therapy for this condition.",
            "link": f"https://www.fda.gov/news-events/press-announcements/item-{n}",
            "published_at": utcnow() - timedelta(hours=2),
            "announcement_type": AnnouncementType.DRUG_APPROVAL,
            "heuristic_priority": PriorityLevel.HIGH,
            "company_name": f"Acme Therapeutics {n} Inc.",
        }
        values.update(overrides)
        return AnnouncementDraft(**values)

    return _make


@pytest.fixture
def make_announcement():
    """Factory for unsaved Announcement rows."""

    def _make(**overrides):
        values = {
            "id": str(uuid.uuid4()),
            "source": FeedSource.FDA_MEDWATCH.value,
            "source_native_id": f"native-{uuid.uuid4().hex[:8]}",
            "title": "Acme Pharmaceuticals Inc. Issues Voluntary Nationwide Recall of Widgetol Tablets",
            "description": "Acme Pharmaceuticals Inc. is recalling one lot due to contamination.",
            "link": "https://www.fda.gov/safety/recalls/acme-widgetol",
            "announcement_type": AnnouncementType.SAFETY_ALERT.value,
            "heuristic_priority": PriorityLevel.HIGH.value,
            "published_at": utcnow() - timedelta(hours=1),
            "company_name": "Acme Pharmaceuticals Inc.",
        }
        values.update(overrides)
        return Announcement(**values)

    return _make


# ---------------------------------------------------------------------------
# Feed documents
# ---------------------------------------------------------------------------


def rfc822(hours_ago: float) -> str:
    return format_datetime((utcnow() - timedelta(hours=hours_ago)).replace(tzinfo=timezone.utc))


def iso8601(hours_ago: float) -> str:
    return (utcnow() - timedelta(hours=hours_ago)).strftime("%Y-%m-%dT%H:%M:%S-00:00")


@pytest.fixture
def fda_rss():
    """FDA press-release RSS with one recent and one old item."""
    return f"""<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0">
  <channel>
    <title>FDA Press Releases</title>
    <link>https://www.fda.gov</link>
    <description>FDA press releases</description>
    <item>
      <title>FDA Approves First Treatment for Rare Liver Disease</title>
      <link>https://www.fda.gov/news-events/press-announcements/fda-approves-first-treatment-rare-liver-disease</link>
      <description>&lt;p&gt;The U.S. Food and Drug Administration approved &lt;b&gt;Livrexa&lt;/b&gt;, the first drug for the disease, developed by Helix Biosciences Inc.&lt;/p&gt;</description>
      <guid>https://www.fda.gov/news-events/press-announcements/fda-approves-first-treatment-rare-liver-disease</guid>
      <pubDate>{rfc822(2)}</pubDate>
    </item>
    <item>
      <title>FDA Roundup: Agency Updates</title>
      <link>https://www.fda.gov/news-events/press-announcements/fda-roundup</link>
      <description>Routine agency update.</description>
      <guid>https://www.fda.gov/news-events/press-announcements/fda-roundup</guid>
      <pubDate>{rfc822(30)}</pubDate>
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def sec_atom():
    """EDGAR current-filings Atom with an 8-K and a 10-Q."""
    return f"""<?xml version="1.0" encoding="ISO-8859-1" ?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Latest Filings - Current Events</title>
  <link rel="self" href="https://www.sec.gov/cgi-bin/browse-edgar?action=getcurrent"/>
  <id>https://www.sec.gov/cgi-bin/browse-edgar?action=getcurrent</id>
  <updated>{iso8601(0)}</updated>
  <entry>
    <title>8-K - Acme Corp (0000320193) (Filer)</title>
    <link rel="alternate" type="text/html" href="https://www.sec.gov/Archives/edgar/data/320193/000032019324000123/0000320193-24-000123-index.htm"/>
    <summary type="html"> &lt;b&gt;Filed:&lt;/b&gt; today &lt;b&gt;AccNo:&lt;/b&gt; 0000320193-24-000123 &lt;b&gt;Size:&lt;/b&gt; 25 KB &lt;br&gt;Item 2.01: Completion of Acquisition</summary>
    <updated>{iso8601(1)}</updated>
    <category scheme="https://www.sec.gov/" label="form type" term="8-K"/>
    <id>urn:tag:sec.gov,2008:accession-number=0000320193-24-000123</id>
  </entry>
  <entry>
    <title>10-Q - Widget Holdings Inc (0000999999) (Filer)</title>
    <link rel="alternate" type="text/html" href="https://www.sec.gov/Archives/edgar/data/999999/000099999924000007/0000999999-24-000007-index.htm"/>
    <summary type="html">Quarterly report</summary>
    <updated>{iso8601(3)}</updated>
    <category scheme="https://www.sec.gov/" label="form type" term="10-Q"/>
    <id>urn:tag:sec.gov,2008:accession-number=0000999999-24-000007</id>
  </entry>
</feed>
"""


def yyyymmdd(days_ago: int) -> str:
    return (utcnow() - timedelta(days=days_ago)).strftime("%Y%m%d")


@pytest.fixture
def openfda_drugs():
    """drugsfda.json with one application approved today."""
    return json.dumps({
        "meta": {"results": {"skip": 0, "limit": 25, "total": 1}},
        "results": [
            {
                "application_number": "NDA215000",
                "sponsor_name": "HELIX BIOSCIENCES INC",
                "products": [
                    {"brand_name": "LIVREXA", "generic_name": "LIVREXAMAB", "dosage_form": "TABLET", "route": "ORAL"},
                ],
                "submissions": [
                    {"submission_type": "ORIG", "submission_number": "1", "submission_status": "AP",
                     "submission_status_date": yyyymmdd(0)},
                    {"submission_type": "SUPPL", "submission_number": "2", "submission_status": "TA",
                     "submission_status_date": yyyymmdd(0)},
                ],
            },
        ],
    })


@pytest.fixture
def openfda_recalls():
    """drug/enforcement.json with a Class I recall today and a Class III one 10 days ago."""
    return json.dumps({
        "results": [
            {
                "recall_number": "D-0101-2025",
                "recalling_firm": "Acme Pharmaceuticals Inc.",
                "classification": "Class I",
                "product_description": "Widgetol Tablets, 10 mg, 100-count bottles, NDC 12345-678-90",
                "reason_for_recall": "Microbial contamination found in one lot.",
                "report_date": yyyymmdd(0),
                "status": "Ongoing",
            },
            {
                "recall_number": "D-0099-2025",
                "recalling_firm": "Generic Labs LLC",
                "classification": "Class III",
                "product_description": "Saline rinse, 8 oz",
                "reason_for_recall": "Labeling error.",
                "report_date": yyyymmdd(10),
            },
        ],
    })


@pytest.fixture
def openfda_510k():
    """device/510k.json with one clearance decided today."""
    return json.dumps({
        "results": [
            {
                "k_number": "K251234",
                "applicant": "Cardiowave Medical, Inc.",
                "device_name": "Cardiowave Pulse Monitor",
                "decision_code": "SESE",
                "decision_description": "Substantially Equivalent",
                "decision_date": yyyymmdd(0),
                "date_received": yyyymmdd(90),
                "clearance_type": "Traditional",
                "review_advisory_committee": "N/A",
                "product_code": "DQA",
            },
        ],
    })
