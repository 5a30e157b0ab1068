import asyncio
import copy
import json
from dataclasses import FrozenInstanceError, replace

import httpx
import pytest

from process_flow_core.domain_models import LoadingStates, SourceDocument
from process_flow_core.exceptions import TransportError
from process_flow_core.flow_ops import collect_ids, find_step, find_task
from process_flow_core.flow_parser import flow_to_dict, flow_to_json
from process_flow_core.providers import OllamaProvider
from process_flow_core.samples import SAMPLE_SOP
from process_flow_core.store import ANALYZED_MESSAGE, STEP_ADDED_MESSAGE, ProcessFlowStore


def _store(provider):
    return ProcessFlowStore(providers={"gemini": provider})


def _analyzed_store(provider, ai_config):
    store = _store(provider)
    assert asyncio.run(store.analyze(SourceDocument(text=SAMPLE_SOP), ai_config))
    return store


def test_analyze_sets_flow_and_greeting(stub_provider, ai_config, sample_flow):
    store = _store(stub_provider)

    ok = asyncio.run(store.analyze(SourceDocument(text=SAMPLE_SOP), ai_config))

    assert ok
    assert store.flow == sample_flow
    assert [m.content for m in store.transcript] == [ANALYZED_MESSAGE]
    assert store.loading == LoadingStates()


def test_analyze_clears_previous_state(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    asyncio.run(store.refine("Please rename the process", ai_config))
    asyncio.run(store.render_document(ai_config))

    asyncio.run(store.analyze(SourceDocument(text="Another SOP"), ai_config))

    assert len(store.transcript) == 1
    assert store.document is None


def test_analyze_failure_reports_error_and_leaves_no_flow(make_stub, ai_config):
    provider = make_stub(fail_with=TransportError("Gemini API request failed with status 503: overloaded", status=503))
    store = _store(provider)

    ok = asyncio.run(store.analyze(SourceDocument(text=SAMPLE_SOP), ai_config))

    assert not ok
    assert store.flow is None
    assert store.transcript[-1].role == "model"
    assert "overloaded" in store.transcript[-1].content
    assert store.loading.flow is False


def test_refine_appends_user_message_then_model_reply(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)

    ok = asyncio.run(store.refine("Add an MDM enrollment step", ai_config))

    assert ok
    assert store.flow.description == "Refined"
    roles = [m.role for m in store.transcript]
    assert roles == ["model", "user", "model"]
    assert store.transcript[-1].content == stub_provider.ai_response

    _, transcript_sent = stub_provider.calls[-1]
    assert transcript_sent[-1].content == "Add an MDM enrollment step"


def test_refine_failure_keeps_tree_and_clears_flag(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    before = copy.deepcopy(store.flow)
    stub_provider.fail_with = ValueError("boom")

    ok = asyncio.run(store.refine("Change everything", ai_config))

    assert not ok
    assert store.flow == before
    assert store.transcript[-2].role == "user"
    assert "boom" in store.transcript[-1].content
    assert store.loading.chat is False


def test_refine_without_flow_reports_not_initialized(stub_provider, ai_config):
    store = _store(stub_provider)

    ok = asyncio.run(store.refine("Hello?", ai_config))

    assert not ok
    assert stub_provider.calls == []
    assert "process is not initialized" in store.transcript[-1].content


def test_enrich_step_adds_exactly_one_trailing_step(stub_provider, ai_config, sample_flow):
    store = _analyzed_store(stub_provider, ai_config)

    ok = asyncio.run(store.enrich_step("task_1_1", "Enroll laptop in MDM", ai_config))

    assert ok
    steps = find_task(store.flow, "task_1_1").steps
    original_steps = find_task(sample_flow, "task_1_1").steps
    assert len(steps) == len(original_steps) + 1
    assert steps[:-1] == original_steps
    assert steps[-1].id not in collect_ids(sample_flow)
    assert store.transcript[-1].content == STEP_ADDED_MESSAGE
    assert store.loading.chat is False


def test_enrich_unknown_task_keeps_tree(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    before = store.flow

    ok = asyncio.run(store.enrich_step("task_9_9", "Something", ai_config))

    assert not ok
    assert store.flow is before
    assert "task_9_9" in store.transcript[-1].content


def test_render_document_stores_markdown(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)

    ok = asyncio.run(store.render_document(ai_config))

    assert ok
    assert store.document == stub_provider.document
    assert store.loading.doc is False

    store.close_document()
    assert store.document is None


def test_render_document_failure_is_reported(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    stub_provider.fail_with = TransportError("timed out")

    ok = asyncio.run(store.render_document(ai_config))

    assert not ok
    assert store.document is None
    assert "timed out" in store.transcript[-1].content


def test_update_step_replaces_and_confirms(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    edited = replace(find_step(store.flow, "step_1_1_2"), name="Image laptop")

    assert store.update_step(edited)

    assert find_step(store.flow, "step_1_1_2").name == "Image laptop"
    assert store.transcript[-1].content.startswith('I\'ve updated the step: "Image laptop"')


def test_update_unknown_step_is_noop(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    before = store.flow
    ghost = replace(find_step(before, "step_1_1_2"), id="step_x")

    assert not store.update_step(ghost)
    assert store.flow is before
    assert len(store.transcript) == 1


def test_reorder_same_parent_only(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)

    assert store.reorder("task_1_1", 0, "task_1_1", 2, "step")
    assert [s.id for s in find_task(store.flow, "task_1_1").steps] == ["step_1_1_2", "step_1_1_3", "step_1_1_1"]

    assert not store.reorder("task_1_1", 0, "task_1_2", 0, "step")


def test_transcript_view_is_a_copy(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    store.transcript.clear()
    assert len(store.transcript) == 1


def test_flow_view_cannot_be_edited_in_place(stub_provider, ai_config, sample_flow):
    store = _analyzed_store(stub_provider, ai_config)

    with pytest.raises(FrozenInstanceError):
        store.flow.description = "Edited from outside"
    with pytest.raises(FrozenInstanceError):
        find_step(store.flow, "step_1_1_1").automation_potential = "Low"

    assert store.flow == sample_flow


def test_reset_clears_everything(stub_provider, ai_config):
    store = _analyzed_store(stub_provider, ai_config)
    store.reset()
    assert store.flow is None
    assert store.transcript == []
    assert store.document is None


def test_sample_sop_end_to_end_through_ollama(ai_config, sample_flow):
    """Análisis → refinamiento con el adapter de Ollama sobre un transporte falso."""
    refined = replace(sample_flow, version="1.3")
    replies = [
        f"```json\n{flow_to_json(sample_flow)}\n```",
        json.dumps({"updatedFlow": flow_to_dict(refined), "aiResponse": "Bumped the version to 1.3."}),
    ]
    prompts = []

    def handler(request):
        body = json.loads(request.content)
        prompts.append(body["messages"][1]["content"])
        return httpx.Response(200, json={"message": {"role": "assistant", "content": replies[len(prompts) - 1]}})

    store = ProcessFlowStore(providers={"ollama": OllamaProvider(transport=httpx.MockTransport(handler))})
    config = replace(ai_config, provider="ollama")

    assert asyncio.run(store.analyze(SourceDocument(text=SAMPLE_SOP), config))
    assert store.flow == sample_flow
    assert "New Employee Onboarding" in prompts[0]

    assert asyncio.run(store.refine("The SOP is now version 1.3", config))
    assert store.flow.version == "1.3"
    assert store.transcript[-1].content == "Bumped the version to 1.3."
    assert "user: The SOP is now version 1.3" in prompts[1]


def _analyzed_ollama_store(sample_flow, *replies):
    """Store sobre Ollama: la primera respuesta es el análisis, las siguientes van en orden."""
    contents = [flow_to_json(sample_flow), *replies]
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"message": {"role": "assistant", "content": contents[len(calls) - 1]}})

    return ProcessFlowStore(providers={"ollama": OllamaProvider(transport=httpx.MockTransport(handler))})


def test_enrich_reply_with_renamed_id_and_no_new_step_keeps_tree(ai_config, sample_flow):
    renamed = flow_to_dict(sample_flow)
    renamed["sub_processes"][0]["tasks"][0]["steps"][0]["id"] = "renamed_id"
    store = _analyzed_ollama_store(sample_flow, json.dumps(renamed))
    config = replace(ai_config, provider="ollama")
    assert asyncio.run(store.analyze(SourceDocument(text=SAMPLE_SOP), config))
    before = store.flow

    ok = asyncio.run(store.enrich_step("task_1_1", "Enroll laptop in MDM", config))

    assert not ok
    assert store.flow is before
    assert [s.id for s in find_task(store.flow, "task_1_1").steps] == ["step_1_1_1", "step_1_1_2", "step_1_1_3"]
    assert store.transcript[-1].content != STEP_ADDED_MESSAGE
    assert "exactly one trailing step" in store.transcript[-1].content
    assert store.loading.chat is False


def test_refine_reply_reusing_an_id_for_another_node_keeps_tree(ai_config, sample_flow):
    swapped = flow_to_dict(sample_flow)
    swapped["sub_processes"][0]["tasks"][1]["id"] = "step_1_2_1"
    swapped["sub_processes"][0]["tasks"][1]["steps"][0]["id"] = "step_1_2_9"
    store = _analyzed_ollama_store(sample_flow, json.dumps({"updatedFlow": swapped, "aiResponse": "Done."}))
    config = replace(ai_config, provider="ollama")
    assert asyncio.run(store.analyze(SourceDocument(text=SAMPLE_SOP), config))
    before = store.flow

    ok = asyncio.run(store.refine("Rename the facilities task", config))

    assert not ok
    assert store.flow is before
    assert "step_1_2_1" in store.transcript[-1].content
