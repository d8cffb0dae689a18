"""
Unit tests for the auditor: classifier, synthesizer, formatter, model client, service.
"""
import json

import httpx
import pytest
import respx

from bookkeeper.auditor import APOLOGY_MESSAGE, NO_RESULTS_MESSAGE, Auditor, OllamaClient
from bookkeeper.auditor.classifier import classify, extract_threshold
from bookkeeper.auditor.formatter import (
    answer_with_model,
    extract_references,
    format_amount,
    format_response,
    format_rows,
)
from bookkeeper.auditor.llm import clean_sql
from bookkeeper.auditor.synthesizer import TEMPLATES, synthesize
from bookkeeper.schemas import AnswerSource, Classification, Intent
from bookkeeper.store import QueryExecutionError

GENERATE_URL = "http://ollama.test/api/generate"


def _model_reply(text):
    return httpx.Response(200, json={"model": "test-model", "response": text, "done": True})


# =====================================================================
# Classifier
# =====================================================================
class TestClassifier:
    @pytest.mark.parametrize(
        "text, intent",
        [
            ("How many flagged receipts are there?", Intent.COUNT_FLAGGED),
            ("How many receipts do we have?", Intent.COUNT_ALL),
            ("How much did we spend in total?", Intent.TOTAL_SPENDING),
            ("Which receipts are flagged?", Intent.FLAGGED_RECEIPTS),
            ("Show receipts above 50000", Intent.HIGH_VALUE),
            ("Receipts under 20,000 please", Intent.LOW_VALUE),
            ("Show me receipts paid by cash", Intent.PAYMENT_BREAKDOWN),
            ("What is the VAT on my receipts", Intent.TAX_INFO),
            ("Anything suspicious to audit?", Intent.AUDIT_FINDINGS),
            ("hello", Intent.LIST_RECEIPTS),
        ],
    )
    def test_intents(self, text, intent):
        assert classify(text).intent is intent

    def test_threshold_extracted(self):
        result = classify("Show receipts above 50000")
        assert result.threshold == 50000
        assert "high_value" in result.matched

    def test_count_beats_flagged(self):
        assert classify("Count the receipts with errors").intent is Intent.COUNT_FLAGGED

    def test_total_with_modifier_is_not_total_spending(self):
        result = classify("What's the total of receipts over 100,000?")
        assert result.intent is Intent.HIGH_VALUE
        assert result.threshold == 100000

    def test_value_modifier_without_number_falls_through(self):
        assert classify("Show me the expensive ones").intent is Intent.LIST_RECEIPTS

    def test_case_insensitive(self):
        assert classify("HOW MANY FLAGGED").intent is Intent.COUNT_FLAGGED

    def test_payment_filters(self):
        assert classify("cash receipts").payment_method == "cash"
        assert classify("card receipts").payment_method == "card"
        assert classify("payment breakdown").payment_method is None

    def test_informational_labels_reported(self):
        result = classify("latest receipts this week")
        assert result.intent is Intent.LIST_RECEIPTS
        assert result.matched == ["recent", "date"]

    def test_extract_threshold(self):
        assert extract_threshold("above 1,500,000 rupiah") == 1500000
        assert extract_threshold("no digits here") is None


# =====================================================================
# Synthesizer
# =====================================================================
class TestSynthesizer:
    def test_threshold_is_bound(self):
        plan = synthesize(classify("Show receipts above 50000"))
        assert plan.params == {"threshold": 50000}
        assert ":threshold" in plan.sql
        assert "50000" not in plan.sql

    def test_payment_filter_is_bound(self):
        plan = synthesize(classify("Show me receipts paid by cash"))
        assert plan.params == {"method": "cash"}
        assert ":method" in plan.sql

    def test_payment_breakdown_groups(self):
        plan = synthesize(classify("payment breakdown"))
        assert "GROUP BY r.payment_method" in plan.sql
        assert plan.params == {}

    def test_listing_caps(self):
        assert synthesize(classify("hello")).sql.endswith("LIMIT 15")
        assert synthesize(classify("Which receipts are flagged?")).sql.endswith("LIMIT 20")

    def test_every_template_skips_deleted(self):
        for sql in TEMPLATES.values():
            assert "deleted_at IS NULL" in sql

    def test_threshold_required(self):
        with pytest.raises(ValueError):
            synthesize(Classification(intent=Intent.HIGH_VALUE))


# =====================================================================
# Formatter
# =====================================================================
class TestFormatter:
    @pytest.mark.parametrize("intent", list(Intent))
    def test_empty_results(self, intent):
        assert format_response(intent, []) == NO_RESULTS_MESSAGE
        assert extract_references([]) == []

    def test_format_amount(self):
        assert format_amount(1234567) == "1,234,567"
        assert format_amount(61600.0) == "61,600"
        assert format_amount(50.05) == "50.05"
        assert format_amount(None) == "0"

    def test_references_capped_in_order(self):
        rows = [{"id": f"r{i}"} for i in range(25)] + [{"count": 1}]
        refs = extract_references(rows)
        assert len(refs) == 20
        assert refs[:3] == ["r0", "r1", "r2"]

    def test_rows_without_id_contribute_nothing(self):
        assert extract_references([{"payment_method": "cash", "count": 3}]) == []

    def test_count_all_template(self):
        text = format_response(Intent.COUNT_ALL, [{"count": 3, "total": 1500000}], currency="IDR")
        assert text == "You have **3** receipts totaling **1,500,000** IDR."

    def test_high_value_template(self):
        rows = [{"id": f"r{i}", "total_amount": 100000 + i, "payment_method": "card"} for i in range(12)]
        text = format_response(Intent.HIGH_VALUE, rows, threshold=50000)
        assert "above 50,000 IDR" in text
        assert "Found 12 receipts" in text
        assert "**r9**" in text
        assert "**r10**" not in text
        assert text.endswith("... and 2 more")

    def test_payment_listing_template(self):
        rows = [{"id": "a", "total_amount": 1000, "payment_method": "cash"}]
        assert format_response(Intent.PAYMENT_BREAKDOWN, rows).startswith("**CASH Payments**")

    def test_audit_template(self):
        rows = [
            {"id": "a", "total_amount": 10, "status": "flagged", "tax_amount": 1},
            {"id": "b", "total_amount": 20, "status": "verified", "tax_amount": None},
        ]
        text = format_response(Intent.AUDIT_FINDINGS, rows)
        assert "**Flagged (mismatch):** 1" in text
        assert "**Missing VAT:** 1" in text

    def test_format_rows_aggregate(self):
        text = format_rows([{"count": 3, "total": 1500}])
        assert "- **count**: 3" in text
        assert "- **total**: 1,500" in text

    def test_format_rows_listing(self):
        rows = [{"id": f"r{i}", "total_amount": 1000} for i in range(11)]
        text = format_rows(rows)
        assert text.startswith("**Found 11 results:**")
        assert text.endswith("... and 1 more")

    def test_answer_falls_back_without_model(self):
        answer = answer_with_model(None, "q", "SELECT 1", [{"id": "a"}], lambda: "fallback")
        assert answer.text == "fallback"
        assert answer.source is AnswerSource.FALLBACK

    def test_answer_skips_model_on_empty_rows(self):
        class _Boom:
            def format_answer(self, *args):
                raise AssertionError("model must not be called")

        answer = answer_with_model(_Boom(), "q", "SELECT 1", [], lambda: "unused")
        assert answer.text == NO_RESULTS_MESSAGE


# =====================================================================
# Model client
# =====================================================================
class TestCleanSql:
    def test_strips_fences(self):
        assert clean_sql("```sql\nSELECT * FROM receipts\n```") == "SELECT * FROM receipts"

    def test_case_insensitive_select(self):
        assert clean_sql("  select 1") == "select 1"

    @pytest.mark.parametrize("text", [None, "", "DROP TABLE receipts", "Here you go: SELECT 1"])
    def test_rejects_non_select(self, text):
        assert clean_sql(text) is None


class TestOllamaClient:
    @respx.mock
    def test_generate_sql(self, llm):
        route = respx.post(GENERATE_URL).mock(return_value=_model_reply("```sql\nSELECT 1\n```"))
        assert llm.generate_sql("anything") == "SELECT 1"

        payload = json.loads(route.calls.last.request.content)
        assert payload["model"] == "test-model"
        assert payload["stream"] is False
        assert "anything" in payload["prompt"]

    @respx.mock
    def test_non_select_rejected(self, llm):
        respx.post(GENERATE_URL).mock(return_value=_model_reply("DELETE FROM receipts"))
        assert llm.generate_sql("wipe it") is None

    @respx.mock
    def test_network_failure(self, llm):
        respx.post(GENERATE_URL).mock(side_effect=httpx.ConnectError("refused"))
        assert llm.generate_sql("q") is None
        assert llm.format_answer("q", "SELECT 1", [{"id": "a"}]) is None

    @respx.mock
    def test_timeout(self, llm):
        respx.post(GENERATE_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        assert llm.format_answer("q", "SELECT 1", [{"id": "a"}]) is None

    @respx.mock
    def test_error_status_not_retried(self, llm):
        route = respx.post(GENERATE_URL).mock(return_value=httpx.Response(500))
        assert llm.format_answer("q", "SELECT 1", [{"id": "a"}]) is None
        assert route.call_count == 1

    @respx.mock
    def test_prompt_carries_first_ten_rows(self, llm):
        route = respx.post(GENERATE_URL).mock(return_value=_model_reply("Twelve receipts."))
        rows = [{"id": f"r{i}"} for i in range(12)]
        assert llm.format_answer("list", "SELECT id FROM receipts", rows) == "Twelve receipts."

        prompt = json.loads(route.calls.last.request.content)["prompt"]
        assert '"r9"' in prompt
        assert '"r10"' not in prompt
        assert "Total rows: 12" in prompt

    @respx.mock
    def test_disabled_client_makes_no_calls(self):
        client = OllamaClient(base_url="http://ollama.test", enabled=False)
        assert client.generate_sql("q") is None
        assert client.format_answer("q", "SELECT 1", [{"id": "a"}]) is None
        assert not respx.calls


# =====================================================================
# Auditor service
# =====================================================================
class TestAuditor:
    def test_high_value_against_store(self, store, seeded):
        reply = Auditor(store).ask("Show receipts above 100000")
        assert reply.intent is Intent.HIGH_VALUE
        assert reply.result_count == 2
        assert len(reply.referenced_receipts) == 2
        assert set(reply.referenced_receipts) <= set(seeded.receipt_ids)
        assert "250,000" in reply.message
        assert not reply.used_llm

    def test_low_value_ascending(self, store, seeded):
        reply = Auditor(store).ask("Receipts below 20000")
        amounts = [store.get_receipt(rid)[0].total_amount for rid in reply.referenced_receipts]
        assert amounts == sorted(amounts)

    def test_count_flagged(self, store, seeded):
        reply = Auditor(store).ask("How many flagged receipts?")
        assert reply.message == "There are **1** flagged receipts that need review."

    def test_payment_breakdown(self, store, seeded):
        reply = Auditor(store).ask("Show me the payment breakdown")
        assert reply.result_count == 2
        assert "**cash**: 3 receipts" in reply.message
        assert reply.referenced_receipts == []

    def test_cash_filter(self, store, seeded):
        reply = Auditor(store).ask("Receipts paid with cash")
        assert reply.result_count == 3

    def test_no_results(self, store):
        reply = Auditor(store).ask("Show receipts above 50000")
        assert reply.message == NO_RESULTS_MESSAGE
        assert reply.referenced_receipts == []
        assert reply.result_count == 0

    def test_deleted_receipts_invisible(self, store, seeded):
        auditor = Auditor(store)
        top = auditor.ask("Show receipts above 100000").referenced_receipts[0]
        store.soft_delete(top)
        store.commit()
        reply = auditor.ask("Show receipts above 100000")
        assert top not in reply.referenced_receipts
        assert reply.result_count == 1

    def test_new_session_and_history(self, store, seeded):
        auditor = Auditor(store)
        reply = auditor.ask("Which receipts are flagged?")
        assert len(reply.session_id) == 36

        auditor.ask("How many receipts?", session_id=reply.session_id)
        messages = auditor.history(reply.session_id)
        assert [m.role for m in messages] == ["user", "assistant", "user", "assistant"]
        assert messages[0].content == "Which receipts are flagged?"
        assert messages[1].referenced_receipts == reply.referenced_receipts

    def test_history_is_per_session(self, store, seeded):
        auditor = Auditor(store)
        auditor.ask("hello", session_id="s1")
        auditor.ask("hello", session_id="s2")
        assert len(auditor.history("s1")) == 2
        assert auditor.history("unknown") == []

    @respx.mock
    def test_model_phrasing(self, store, seeded, llm):
        respx.post(GENERATE_URL).mock(return_value=_model_reply("One receipt is flagged."))
        reply = Auditor(store, llm).ask("Which receipts are flagged?", use_llm=True)
        assert reply.message == "One receipt is flagged."
        assert reply.used_llm

    @respx.mock
    def test_model_failure_falls_back(self, store, seeded, llm):
        respx.post(GENERATE_URL).mock(side_effect=httpx.ConnectError("refused"))
        reply = Auditor(store, llm).ask("Which receipts are flagged?", use_llm=True)
        assert reply.message.startswith("**Flagged Receipts** (1 found)")
        assert not reply.used_llm

    @respx.mock
    def test_sql_path(self, store, seeded, llm):
        respx.post(GENERATE_URL).mock(
            side_effect=[
                _model_reply("```sql\nSELECT r.id, r.total_amount FROM receipts r WHERE r.status = 'flagged'\n```"),
                _model_reply("There is one flagged receipt."),
            ]
        )
        reply = Auditor(store, llm).ask_sql("What is flagged?")
        assert reply.sql.startswith("SELECT r.id")
        assert reply.result_count == 1
        assert reply.message == "There is one flagged receipt."
        assert reply.used_llm
        assert reply.error is None
        assert len(reply.referenced_receipts) == 1

    @respx.mock
    def test_sql_path_phrasing_fallback(self, store, seeded, llm):
        respx.post(GENERATE_URL).mock(
            side_effect=[
                _model_reply("SELECT COUNT(*) AS count FROM receipts r"),
                httpx.Response(503),
            ]
        )
        reply = Auditor(store, llm).ask_sql("How many?")
        assert reply.message.startswith("**Results:**")
        assert "- **count**: 5" in reply.message
        assert not reply.used_llm

    @respx.mock
    def test_sql_path_rejected(self, store, seeded, llm):
        respx.post(GENERATE_URL).mock(return_value=_model_reply("I am not sure."))
        reply = Auditor(store, llm).ask_sql("tell me a joke", session_id="s1")
        assert reply.message == APOLOGY_MESSAGE
        assert reply.error
        assert reply.sql is None
        assert Auditor(store).history("s1") == []

    def test_sql_path_without_model(self, store):
        reply = Auditor(store, OllamaClient(enabled=False)).ask_sql("anything")
        assert reply.message == APOLOGY_MESSAGE

    @respx.mock
    def test_sql_path_execution_error(self, store, seeded, llm):
        respx.post(GENERATE_URL).mock(return_value=_model_reply("SELECT nope FROM missing_table"))
        with pytest.raises(QueryExecutionError) as exc_info:
            Auditor(store, llm).ask_sql("broken")
        assert "missing_table" in str(exc_info.value)
        assert exc_info.value.sql == "SELECT nope FROM missing_table"
