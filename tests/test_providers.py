import asyncio
import json
from dataclasses import replace
from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors

from process_flow_core.config import AzureConfig, OllamaConfig
from process_flow_core.domain_models import ChatMessage, FileAttachment, SourceDocument
from process_flow_core.exceptions import (
    CapabilityError,
    ConfigurationError,
    ParseError,
    ProtocolError,
    TransportError,
)
from process_flow_core.flow_parser import flow_to_dict, flow_to_json, parse_process_flow
from process_flow_core.prompts import ENRICH_SYSTEM_PROMPT, REFINE_RULES, get_refine_system_prompt
from process_flow_core.providers import AzureOpenAIProvider, GeminiProvider, OllamaProvider


# ============================================================
# Helpers
# ============================================================

def _completion(content):
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def _azure(handler, requests):
    def _record(request):
        requests.append(request)
        return handler(request)

    return AzureOpenAIProvider(
        http_client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(_record))
    )


def _ollama(handler, requests):
    def _record(request):
        requests.append(request)
        return handler(request)

    return OllamaProvider(transport=httpx.MockTransport(_record))


class FakeGeminiModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []
        self.closed = 0

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeGeminiAio:
    def __init__(self, models):
        self.models = models

    async def aclose(self):
        self.models.closed += 1


def _gemini(models):
    client = SimpleNamespace(aio=FakeGeminiAio(models))
    return GeminiProvider(client_factory=lambda config: client)


# ============================================================
# Azure OpenAI
# ============================================================

def test_azure_missing_config_fails_without_request(ai_config):
    requests = []
    provider = _azure(lambda r: httpx.Response(200, json=_completion("{}")), requests)
    config = replace(ai_config, provider="azure", azure=AzureConfig(endpoint="", deployment="gpt-4o", api_key="k"))

    with pytest.raises(ConfigurationError):
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), config))

    assert requests == []


def test_azure_initial_flow_parses_fenced_reply(ai_config, sample_flow):
    requests = []
    reply = f"Here is the flow you asked for:\n```json\n{flow_to_json(sample_flow)}\n```"
    provider = _azure(lambda r: httpx.Response(200, json=_completion(reply)), requests)
    config = replace(ai_config, provider="azure")

    flow = asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), config))

    assert flow == sample_flow
    request = requests[0]
    assert request.url.path == "/openai/deployments/gpt-4o/chat/completions"
    assert request.url.params["api-version"] == "2024-02-01"
    assert request.headers["api-key"] == "azure-test-key"

    body = json.loads(request.content)
    assert body["response_format"] == {"type": "json_object"}
    assert body["temperature"] == 0.2
    assert body["max_tokens"] == 4096
    assert body["messages"][0]["role"] == "system"
    assert '"sub_processes"' in body["messages"][1]["content"]
    assert "Some SOP" in body["messages"][1]["content"]


def test_azure_http_error_is_transport_error(ai_config):
    requests = []
    provider = _azure(lambda r: httpx.Response(500, text="upstream exploded"), requests)
    config = replace(ai_config, provider="azure")

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), config))

    assert exc_info.value.status == 500
    assert "upstream exploded" in exc_info.value.body
    assert len(requests) == 1


def test_azure_empty_choices_is_protocol_error(ai_config):
    payload = dict(_completion(""), choices=[])
    provider = _azure(lambda r: httpx.Response(200, json=payload), [])
    config = replace(ai_config, provider="azure")

    with pytest.raises(ProtocolError):
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), config))


def test_azure_document_is_free_text(ai_config, sample_flow):
    requests = []
    provider = _azure(lambda r: httpx.Response(200, json=_completion("# SOP\n\nText")), requests)
    config = replace(ai_config, provider="azure")

    document = asyncio.run(provider.generate_final_document(sample_flow, config))

    assert document == "# SOP\n\nText"
    assert "response_format" not in json.loads(requests[0].content)


def test_azure_rejects_file_attachments(ai_config):
    provider = _azure(lambda r: httpx.Response(200, json=_completion("{}")), [])
    source = SourceDocument(file=FileAttachment(mime_type="application/pdf", data="JVBERi0="))

    with pytest.raises(CapabilityError):
        asyncio.run(provider.generate_initial_flow(source, replace(ai_config, provider="azure")))


def test_azure_refinement_sends_rules_and_parses_envelope(ai_config, sample_flow, sample_flow_dict):
    requests = []
    envelope = json.dumps({"updatedFlow": sample_flow_dict, "aiResponse": "Added the MDM step."})
    provider = _azure(lambda r: httpx.Response(200, json=_completion(envelope)), requests)
    transcript = [ChatMessage(role="user", content="Add a step for MDM enrollment")]

    result = asyncio.run(provider.refine_flow_with_chat(transcript, sample_flow, replace(ai_config, provider="azure")))

    assert result.updated_flow == sample_flow
    assert result.ai_response == "Added the MDM step."
    body = json.loads(requests[0].content)
    assert body["messages"][0]["content"] == get_refine_system_prompt(json_envelope=True)
    assert body["response_format"] == {"type": "json_object"}
    assert '"aiResponse"' in body["messages"][1]["content"]
    assert "user: Add a step for MDM enrollment" in body["messages"][1]["content"]


def test_azure_enrichment_sends_task_and_description(ai_config, sample_flow):
    requests = []
    provider = _azure(lambda r: httpx.Response(200, json=_completion(flow_to_json(sample_flow))), requests)

    asyncio.run(provider.enrich_step(sample_flow, "task_1_2", "Hand over the badge", replace(ai_config, provider="azure")))

    body = json.loads(requests[0].content)
    assert body["messages"][0]["content"] == ENRICH_SYSTEM_PROMPT
    assert body["response_format"] == {"type": "json_object"}
    assert '- Task ID: "task_1_2"' in body["messages"][1]["content"]
    assert '- Step Description: "Hand over the badge"' in body["messages"][1]["content"]


def test_azure_timeout_is_transport_error(ai_config):
    def _slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = _azure(_slow, [])

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), replace(ai_config, provider="azure")))

    assert exc_info.value.status is None
    assert "timed out" in str(exc_info.value)


# ============================================================
# Ollama
# ============================================================

def test_ollama_missing_model_fails_without_request(ai_config):
    requests = []
    provider = _ollama(lambda r: httpx.Response(200, json={}), requests)
    config = replace(ai_config, provider="ollama", ollama=OllamaConfig(base_url="http://ollama.test", model=""))

    with pytest.raises(ConfigurationError):
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), config))

    assert requests == []


def test_ollama_refinement_parses_envelope(ai_config, sample_flow_dict):
    requests = []
    envelope = json.dumps({"updatedFlow": sample_flow_dict, "aiResponse": "Which HRIS do you use?"})
    provider = _ollama(
        lambda r: httpx.Response(200, json={"message": {"role": "assistant", "content": envelope}}),
        requests,
    )
    config = replace(ai_config, provider="ollama")
    transcript = [ChatMessage(role="user", content="Add a step for MDM enrollment")]

    result = asyncio.run(provider.refine_flow_with_chat(transcript, parse_process_flow(sample_flow_dict), config))

    assert result.ai_response == "Which HRIS do you use?"
    assert flow_to_dict(result.updated_flow) == sample_flow_dict

    request = requests[0]
    assert str(request.url) == "http://ollama.test:11434/api/chat"
    body = json.loads(request.content)
    assert body["model"] == "llama3"
    assert body["stream"] is False
    assert body["format"] == "json"
    assert '"updatedFlow"' in body["messages"][0]["content"]
    assert "user: Add a step for MDM enrollment" in body["messages"][1]["content"]


def test_ollama_document_has_no_json_format(ai_config, sample_flow):
    requests = []
    provider = _ollama(lambda r: httpx.Response(200, json={"message": {"content": "# SOP"}}), requests)

    document = asyncio.run(provider.generate_final_document(sample_flow, replace(ai_config, provider="ollama")))

    assert document == "# SOP"
    assert "format" not in json.loads(requests[0].content)


def test_ollama_http_error_is_transport_error(ai_config):
    provider = _ollama(lambda r: httpx.Response(404, text="model 'llama3' not found"), [])

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), replace(ai_config, provider="ollama")))

    assert exc_info.value.status == 404
    assert "not found" in str(exc_info.value)


def test_ollama_connection_error_is_transport_error(ai_config):
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = _ollama(_refuse, [])

    with pytest.raises(TransportError):
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), replace(ai_config, provider="ollama")))


def test_ollama_envelope_without_content_is_protocol_error(ai_config):
    provider = _ollama(lambda r: httpx.Response(200, json={"done": True}), [])

    with pytest.raises(ProtocolError):
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), replace(ai_config, provider="ollama")))


def test_ollama_invalid_json_content_is_parse_error(ai_config):
    provider = _ollama(lambda r: httpx.Response(200, json={"message": {"content": "Sorry, no idea."}}), [])

    with pytest.raises(ParseError) as exc_info:
        asyncio.run(provider.generate_initial_flow(SourceDocument(text="Some SOP"), replace(ai_config, provider="ollama")))

    assert exc_info.value.raw_text == "Sorry, no idea."


# ============================================================
# Gemini
# ============================================================

def test_gemini_missing_key_fails_without_call(ai_config):
    models = FakeGeminiModels(text="{}")
    config = replace(ai_config, gemini=replace(ai_config.gemini, api_key=""))

    with pytest.raises(ConfigurationError):
        asyncio.run(_gemini(models).generate_initial_flow(SourceDocument(text="Some SOP"), config))

    assert models.calls == []


def test_gemini_text_analysis_uses_response_schema(ai_config, sample_flow):
    models = FakeGeminiModels(text=flow_to_json(sample_flow))

    flow = asyncio.run(_gemini(models).generate_initial_flow(SourceDocument(text="Some SOP"), ai_config))

    assert flow == sample_flow
    call = models.calls[0]
    assert call["model"] == "gemini-2.5-flash"
    assert call["config"].response_mime_type == "application/json"
    assert call["config"].response_schema is not None
    assert "Some SOP" in call["contents"]
    assert "JSON Schema to follow" not in call["contents"]


def test_gemini_file_analysis_sends_inline_bytes(ai_config, sample_flow):
    models = FakeGeminiModels(text=flow_to_json(sample_flow))
    source = SourceDocument(file=FileAttachment(mime_type="application/pdf", data="JVBERi0xLjQ="))

    asyncio.run(_gemini(models).generate_initial_flow(source, ai_config))

    parts = models.calls[0]["contents"]
    assert parts[1].inline_data.mime_type == "application/pdf"
    assert parts[1].inline_data.data == b"%PDF-1.4"


def test_gemini_payload_is_parsed_directly(ai_config, sample_flow):
    models = FakeGeminiModels(text=f"```json\n{flow_to_json(sample_flow)}\n```")

    with pytest.raises(ParseError):
        asyncio.run(_gemini(models).generate_initial_flow(SourceDocument(text="Some SOP"), ai_config))


def test_gemini_api_error_is_transport_error(ai_config):
    error = errors.ClientError(403, {"error": {"code": 403, "message": "API key not valid", "status": "PERMISSION_DENIED"}})
    models = FakeGeminiModels(error=error)

    with pytest.raises(TransportError) as exc_info:
        asyncio.run(_gemini(models).generate_initial_flow(SourceDocument(text="Some SOP"), ai_config))

    assert exc_info.value.status == 403
    assert "API key not valid" in str(exc_info.value)


def test_gemini_document_has_no_schema(ai_config, sample_flow):
    models = FakeGeminiModels(text="# Onboarding SOP")

    document = asyncio.run(_gemini(models).generate_final_document(sample_flow, ai_config))

    assert document == "# Onboarding SOP"
    assert models.calls[0]["config"].response_schema is None


def test_gemini_empty_text_is_protocol_error(ai_config, sample_flow):
    models = FakeGeminiModels(text=None)

    with pytest.raises(ProtocolError):
        asyncio.run(_gemini(models).generate_final_document(sample_flow, ai_config))


def test_gemini_refinement_sends_rules_and_envelope_schema(ai_config, sample_flow, sample_flow_dict):
    envelope = json.dumps({"updatedFlow": sample_flow_dict, "aiResponse": "Which HRIS do you use?"})
    models = FakeGeminiModels(text=envelope)
    transcript = [ChatMessage(role="user", content="Add a step for MDM enrollment")]

    result = asyncio.run(_gemini(models).refine_flow_with_chat(transcript, sample_flow, ai_config))

    assert result.updated_flow == sample_flow
    assert result.ai_response == "Which HRIS do you use?"
    call = models.calls[0]
    assert REFINE_RULES.splitlines()[0] in str(call["config"].system_instruction)
    assert call["config"].response_mime_type == "application/json"
    assert "aiResponse" in str(call["config"].response_schema)
    assert "user: Add a step for MDM enrollment" in call["contents"]


def test_gemini_enrichment_sends_enrich_prompt_and_flow_schema(ai_config, sample_flow):
    models = FakeGeminiModels(text=flow_to_json(sample_flow))

    asyncio.run(_gemini(models).enrich_step(sample_flow, "task_1_2", "Hand over the badge", ai_config))

    call = models.calls[0]
    assert "by adding a new step to a specific task" in str(call["config"].system_instruction)
    assert call["config"].response_mime_type == "application/json"
    assert "sub_processes" in str(call["config"].response_schema)
    assert "aiResponse" not in str(call["config"].response_schema)
    assert '- Task ID: "task_1_2"' in call["contents"]


def test_gemini_client_is_closed_after_each_call(ai_config, sample_flow):
    models = FakeGeminiModels(text="# Onboarding SOP")
    provider = _gemini(models)

    asyncio.run(provider.generate_final_document(sample_flow, ai_config))
    models.error = errors.ServerError(503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}})
    with pytest.raises(TransportError):
        asyncio.run(provider.generate_final_document(sample_flow, ai_config))

    assert models.closed == 2
