import json
from types import SimpleNamespace

from conftest import FakeGeminiClient, quiz_payload
from histomed import messages
from histomed.ai import prompts
from histomed.ai.content_fetchers import ContentFetcher, LibraryCatalog
from histomed.ai.gemini_client import GeminiClient, GeminiConfig
from histomed.domain.topics import get_topic
from histomed.errors import MalformedResponseError, ServiceError
from histomed.imaging.normalizer import to_data_url

ANALYSIS = {
    "tissueType": "Tecido Ósseo",
    "features": ["Sistemas de Havers", "Osteócitos em lacunas"],
    "diagnosis": "Osso compacto",
    "description": "Corte transversal de osso compacto.",
}


def test_library_content_uses_library_instruction():
    client = FakeGeminiClient(text="## Tecido Epitelial\n...")
    text = ContentFetcher(client).fetch_library_content("Tecido Epitelial")

    assert text.startswith("## Tecido Epitelial")
    kind, contents, instruction, temperature = client.calls[0]
    assert "Tecido Epitelial" in contents
    assert instruction == prompts.SYSTEM_INSTRUCTION_LIBRARY
    assert temperature == prompts.LIBRARY_TEMPERATURE


def test_library_failure_returns_localized_message():
    fetcher = ContentFetcher(FakeGeminiClient(error=ServiceError("timeout")))
    assert fetcher.fetch_library_content("Tecido Nervoso") == messages.LIBRARY_UNAVAILABLE


def test_missing_client_behaves_like_service_failure():
    fetcher = ContentFetcher(None)
    assert fetcher.fetch_library_content("Pele e Anexos") == messages.LIBRARY_UNAVAILABLE
    assert fetcher.fetch_quiz_questions("Pele e Anexos") == []
    assert fetcher.analyze_image(b"\xff\xd8") is None


def test_quiz_questions_are_parsed():
    client = FakeGeminiClient(json_data=quiz_payload(10))
    questions = ContentFetcher(client).fetch_quiz_questions("Tecido Epitelial")

    assert len(questions) == 10
    assert client.calls[0][4] == prompts.QUIZ_RESPONSE_SCHEMA


def test_malformed_quiz_returns_empty_list():
    payload = quiz_payload(10)
    payload[4]["options"] = ["só uma"]
    fetcher = ContentFetcher(FakeGeminiClient(json_data=payload))
    assert fetcher.fetch_quiz_questions("Tecido Epitelial") == []


def test_unparseable_quiz_returns_empty_list():
    fetcher = ContentFetcher(FakeGeminiClient(error=MalformedResponseError("lixo")))
    assert fetcher.fetch_quiz_questions("Tecido Epitelial") == []


def test_analyze_data_url_with_fenced_response():
    client = FakeGeminiClient(image_text="```json\n" + json.dumps(ANALYSIS) + "\n```")
    analysis = ContentFetcher(client).analyze_image(to_data_url(b"\xff\xd8jpeg", "image/jpeg"))

    assert analysis.tissue_type == "Tecido Ósseo"
    assert analysis.features == ANALYSIS["features"]
    kind, image, mime, prompt, temperature = client.calls[0]
    assert image == b"\xff\xd8jpeg"
    assert mime == "image/jpeg"
    assert temperature == prompts.MICROSCOPE_TEMPERATURE


def test_analyze_invalid_response_returns_none():
    client = FakeGeminiClient(image_text="Não consegui identificar o tecido.")
    assert ContentFetcher(client).analyze_image(b"bytes", "image/png") is None


def test_catalog_caches_success_only():
    client = FakeGeminiClient(error=ServiceError("offline"))
    catalog = LibraryCatalog(ContentFetcher(client))
    topic = get_topic("epitelial")

    assert catalog.content_for(topic) == messages.LIBRARY_UNAVAILABLE
    assert catalog.cached(topic) is None

    client.error = None
    client.text = "Resumo"
    assert catalog.content_for(topic) == "Resumo"
    assert catalog.content_for(topic) == "Resumo"
    assert catalog.cached(topic) == "Resumo"
    assert len(client.calls) == 2


def _client_returning(text):
    # GeminiClient real, sem o SDK: só o models.generate_content é substituído
    client = GeminiClient.__new__(GeminiClient)
    client.cfg = GeminiConfig(api_key="chave")
    client._types = SimpleNamespace(GenerateContentConfig=lambda **kwargs: kwargs)
    client._client = SimpleNamespace(models=SimpleNamespace(
        generate_content=lambda **kwargs: SimpleNamespace(text=text)))
    return client


def test_empty_model_reply_is_a_library_failure():
    catalog = LibraryCatalog(ContentFetcher(_client_returning("   ")))
    topic = get_topic("muscular")

    assert catalog.content_for(topic) == messages.LIBRARY_UNAVAILABLE
    assert catalog.cached(topic) is None
