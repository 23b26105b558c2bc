import pytest
import requests

from semaphore_client.client import ClassificationClient, build_form_fields
from semaphore_client.exceptions import (
    DecodeError,
    EmptyResultError,
    FatalTransportError,
    RecoverableApplicationError,
    TimeoutFailure,
    ValidationError,
)
from semaphore_client.models import ArticleType, ClassificationOptions, RequestKind

SERVER_URL = "http://cs.example.com/cls/"
BOUNDARY = "fedcba9876543210fedcba9876543210"
API_KEY = "c2VjcmV0LWtleQ=="

CLASSIFY_RESPONSE = """<response><STRUCTUREDDOCUMENT>
  <META name="Type" value="Invoice" score="0.92">
    <META name="Subtype" value="Utility" score="0.5"/>
  </META>
</STRUCTUREDDOCUMENT></response>"""

CLASSES_RESPONSE = (
    "<response><Classes>"
    '<Class Name="A"/><Class Name="TEXTMINE_B"/><Class Name="C"/>'
    "</Classes></response>"
)


@pytest.fixture
def client():
    """Fixture to create a ClassificationClient with a fixed boundary."""
    with ClassificationClient(
        SERVER_URL, timeout=30, api_key=API_KEY, boundary=BOUNDARY
    ) as client:
        yield client


def part(name: str, value: str) -> bytes:
    return (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'
    ).encode("utf-8")


# --- Construction ---


@pytest.mark.parametrize("server_url", ["", "cs.example.com/cls", "/relative/path"])
def test_rejects_relative_server_url(server_url):
    with pytest.raises(ValidationError) as exc_info:
        ClassificationClient(server_url)

    assert exc_info.value.parameter == "server_url"


@pytest.mark.parametrize("timeout", [0, -5, 2_147_484])
def test_rejects_invalid_timeout(timeout):
    with pytest.raises(ValidationError) as exc_info:
        ClassificationClient(SERVER_URL, timeout=timeout)

    assert exc_info.value.parameter == "timeout"


def test_accepts_largest_timeout():
    client = ClassificationClient(SERVER_URL, timeout=2_147_483)

    assert client.timeout == 2_147_483


def test_rejects_invalid_api_key():
    with pytest.raises(ValidationError) as exc_info:
        ClassificationClient(SERVER_URL, api_key="not a key")

    assert exc_info.value.parameter == "api_key"


def test_generates_boundary_per_client():
    first = ClassificationClient(SERVER_URL)
    second = ClassificationClient(SERVER_URL)

    assert len(first.boundary) == 32
    assert first.boundary != second.boundary


def test_from_settings(mocker):
    settings = mocker.Mock(
        CLASSIFICATION_SERVER_URL=SERVER_URL,
        REQUEST_TIMEOUT=45,
        CLASSIFICATION_API_KEY="",
    )

    client = ClassificationClient.from_settings(settings)

    assert client.server_url == SERVER_URL
    assert client.timeout == 45
    assert client.api_key == ""


# --- Form fields ---


def test_build_form_fields_order_and_options():
    options = ClassificationOptions(
        threshold=48,
        type="standard",
        clustering_type="RMS",
        clustering_threshold=0.25,
        article_type=ArticleType.SINGLE_ARTICLE,
    )

    fields = build_form_fields(
        RequestKind.CLASSIFY, "Title", "text", {"author": "Ada"}, options
    )

    assert list(fields.items()) == [
        ("operation", "CLASSIFY"),
        ("title", "Title"),
        ("body", "text"),
        ("threshold", "48"),
        ("type", "standard"),
        ("clustering_type", "RMS"),
        ("clustering_threshold", "0.25"),
        ("singlearticle", "1"),
        ("meta_author", "Ada"),
    ]


@pytest.mark.parametrize(
    "article_type, expected",
    [
        (ArticleType.DEFAULT, {}),
        (ArticleType.SERVER_DEFAULT, {}),
        (ArticleType.SINGLE_ARTICLE, {"singlearticle": "1"}),
        (ArticleType.MULTI_ARTICLE, {"multiarticle": "1"}),
    ],
)
def test_build_form_fields_article_flags_for_classify(article_type, expected):
    options = ClassificationOptions(article_type=article_type)

    fields = build_form_fields(RequestKind.CLASSIFY, "T", "", {}, options)

    flags = {k: v for k, v in fields.items() if k.endswith("article")}
    assert flags == expected


@pytest.mark.parametrize(
    "article_type, expected",
    [
        (ArticleType.DEFAULT, {}),
        (ArticleType.SERVER_DEFAULT, {}),
        (ArticleType.SINGLE_ARTICLE, {"singlearticle": ""}),
        (ArticleType.MULTI_ARTICLE, {"multiarticle": ""}),
    ],
)
def test_build_form_fields_article_flags_for_text_mine(article_type, expected):
    options = ClassificationOptions(article_type=article_type)

    fields = build_form_fields(RequestKind.TEXT_MINE, "T", "", {}, options)

    flags = {k: v for k, v in fields.items() if k.endswith("article")}
    assert flags == expected
    assert fields["operation_mode"] == "TextMine"


def test_build_form_fields_skips_unset_options():
    fields = build_form_fields(
        RequestKind.CLASSIFY, "T", "", {}, ClassificationOptions(threshold=0)
    )

    assert fields == {"operation": "CLASSIFY", "title": "T", "body": "", "threshold": "0"}


# --- Validation ---


def test_classify_requires_meta_values(client, requests_mock):
    with pytest.raises(ValidationError) as exc_info:
        client.classify("T", meta_values=None)

    assert exc_info.value.parameter == "meta_values"
    assert not requests_mock.called


@pytest.mark.parametrize("file_name", [None, "", "   "])
def test_classify_document_requires_file_name(client, requests_mock, file_name):
    with pytest.raises(ValidationError) as exc_info:
        client.classify("T", document=b"data", file_name=file_name, meta_values={})

    assert exc_info.value.parameter == "file_name"
    assert not requests_mock.called


def test_classify_file_name_requires_document(client, requests_mock):
    with pytest.raises(ValidationError) as exc_info:
        client.text_mine("T", file_name="doc.pdf", meta_values={})

    assert exc_info.value.parameter == "document"
    assert not requests_mock.called


# --- Submissions ---


def test_classify_posts_multipart_and_decodes(client, requests_mock):
    mock_post = requests_mock.post(SERVER_URL, text=CLASSIFY_RESPONSE)

    result = client.classify(
        "Quarterly bill",
        document=b"%PDF-1.7 binary",
        file_name="bill.pdf",
        meta_values={"source": "scanner"},
        alt_body="alt text",
    )

    request = mock_post.last_request
    assert request.method == "POST"
    assert request.headers["Content-Type"] == f"multipart/form-data; boundary={BOUNDARY}"
    assert request.headers["Authorization"] == f"Bearer {API_KEY}"
    assert request.timeout == 30
    assert request.body == (
        part("operation", "CLASSIFY")
        + part("title", "Quarterly bill")
        + part("body", "alt text")
        + part("meta_source", "scanner")
        + f"--{BOUNDARY}\r\n".encode("utf-8")
        + b'Content-Disposition: form-data; name="UploadFile"; filename="bill.pdf"\r\n'
        + b"Content-Type: application/octet-stream\r\n\r\n"
        + b"%PDF-1.7 binary\r\n"
        + f"--{BOUNDARY}--\r\n".encode("utf-8")
    )

    assert [node.value for node in result.nodes] == ["Invoice"]
    assert result.nodes[0].children[0].class_name == "Subtype"
    assert result.status_code == 200


def test_classify_without_document_sends_fields_only(client, requests_mock):
    mock_post = requests_mock.post(SERVER_URL, text=CLASSIFY_RESPONSE)

    client.classify("T", meta_values={}, alt_body="text only")

    body = mock_post.last_request.body
    assert b"UploadFile" not in body
    assert body.endswith(f"--{BOUNDARY}--\r\n".encode("utf-8"))


def test_text_mine_sends_operation_mode(client, requests_mock):
    mock_post = requests_mock.post(SERVER_URL, text=CLASSIFY_RESPONSE)

    client.text_mine(
        "T",
        meta_values={},
        options=ClassificationOptions(article_type=ArticleType.MULTI_ARTICLE),
    )

    body = mock_post.last_request.body
    assert part("operation_mode", "TextMine") in body
    assert part("multiarticle", "") in body


def test_classify_decodes_utf8_without_charset(client, requests_mock):
    requests_mock.post(
        SERVER_URL,
        content='<response><META name="City" value="Zürich"/></response>'.encode("utf-8"),
        headers={"Content-Type": "text/xml"},
    )

    result = client.classify("T", meta_values={})

    assert result.nodes[0].value == "Zürich"


def test_classify_timeout(client, requests_mock):
    requests_mock.post(SERVER_URL, exc=requests.exceptions.ReadTimeout)

    with pytest.raises(TimeoutFailure, match="30 seconds") as exc_info:
        client.classify("T", meta_values={})

    assert exc_info.value.timeout == 30
    assert requests_mock.call_count == 1


def test_classify_error_status_with_body_is_decoded(client, requests_mock):
    requests_mock.post(
        SERVER_URL,
        status_code=500,
        text="<response><error>Unable to read document</error></response>",
    )

    result = client.classify("T", meta_values={})

    assert result.status_code == 500
    assert result.errors == ("Unable to read document",)
    with pytest.raises(RecoverableApplicationError, match="Unable to read document"):
        result.raise_for_error()


def test_classify_connection_error_is_fatal(client, requests_mock):
    requests_mock.post(SERVER_URL, exc=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(FatalTransportError) as exc_info:
        client.classify("T", meta_values={})

    assert isinstance(exc_info.value.cause, requests.exceptions.ConnectionError)
    assert exc_info.value.__cause__ is exc_info.value.cause


def test_classify_cancellation_propagates(client, requests_mock):
    requests_mock.post(SERVER_URL, exc=KeyboardInterrupt)

    with pytest.raises(KeyboardInterrupt):
        client.classify("T", meta_values={})


def test_classify_malformed_body(client, requests_mock):
    requests_mock.post(SERVER_URL, text="<html>Proxy error")

    with pytest.raises(DecodeError) as exc_info:
        client.classify("T", meta_values={})

    assert exc_info.value.raw == "<html>Proxy error"


def test_classify_logs_exceptions(requests_mock, mocker):
    logger = mocker.Mock()
    client = ClassificationClient(SERVER_URL, logger=logger)
    requests_mock.post(SERVER_URL, exc=requests.exceptions.ConnectionError)

    with pytest.raises(FatalTransportError):
        client.classify("T", meta_values={})

    logger.exception.assert_called_once()


# --- Queries ---


def test_get_classification_classes_filters_text_mining(client, requests_mock):
    mock_get = requests_mock.get(
        f"{SERVER_URL}?operation=LISTRULENETCLASSES", text=CLASSES_RESPONSE
    )

    assert client.get_classification_classes() == ["A", "C"]
    assert mock_get.last_request.method == "GET"
    assert mock_get.last_request.headers["Authorization"] == f"Bearer {API_KEY}"


def test_get_text_mining_classes_unfiltered(client, requests_mock):
    requests_mock.get(f"{SERVER_URL}?operation=LISTRULENETCLASSES", text=CLASSES_RESPONSE)

    assert client.get_text_mining_classes() == ["A", "TEXTMINE_B", "C"]


def test_get_classes_empty(client, requests_mock):
    requests_mock.get(
        f"{SERVER_URL}?operation=LISTRULENETCLASSES", text="<response><Classes/></response>"
    )

    with pytest.raises(EmptyResultError):
        client.get_classification_classes()


def test_get_languages(client, requests_mock):
    requests_mock.get(
        f"{SERVER_URL}?operation=listlanguages",
        text=(
            '<languages type="iso">'
            '<language id="en" name="English" display="English" default="true"/>'
            "</languages>"
        ),
    )

    languages = client.get_languages()

    assert [language.id for language in languages] == ["en"]
    assert languages[0].is_default
    assert not languages[0].has_rules_defined


def test_get_version(client, requests_mock):
    requests_mock.get(
        f"{SERVER_URL}?operation=version",
        text="<response><version>Semaphore 5.6.1 - Classification Server</version></response>",
    )

    assert client.get_version() == "5.6.1"


def test_query_error_status_is_fatal(client, requests_mock):
    requests_mock.get(f"{SERVER_URL}?operation=version", status_code=503)

    with pytest.raises(FatalTransportError) as exc_info:
        client.get_version()

    assert isinstance(exc_info.value.cause, requests.exceptions.HTTPError)


def test_query_timeout(client, requests_mock):
    requests_mock.get(
        f"{SERVER_URL}?operation=listlanguages", exc=requests.exceptions.ConnectTimeout
    )

    with pytest.raises(TimeoutFailure):
        client.get_languages()


def test_classify_honours_xml_declared_encoding(client, requests_mock):
    body = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        '<response><META name="City" value="Zürich"/></response>'
    )
    requests_mock.post(
        SERVER_URL,
        content=body.encode("latin-1"),
        headers={"Content-Type": "text/xml"},
    )

    result = client.classify("T", meta_values={})

    assert result.nodes[0].value == "Zürich"
    assert result.raw == body


def test_classify_logs_unexpected_exceptions(requests_mock, mocker):
    logger = mocker.Mock()
    client = ClassificationClient(SERVER_URL, logger=logger)
    requests_mock.post(SERVER_URL, exc=ValueError("boom"))

    with pytest.raises(ValueError, match="boom"):
        client.classify("T", meta_values={})

    logger.exception.assert_called_once()


def test_classify_logs_decode_errors(requests_mock, mocker):
    logger = mocker.Mock()
    client = ClassificationClient(SERVER_URL, logger=logger)
    requests_mock.post(SERVER_URL, text="<html>Proxy error")

    with pytest.raises(DecodeError):
        client.classify("T", meta_values={})

    logger.exception.assert_called_once()


def test_classify_validation_errors_are_not_sent(requests_mock, mocker):
    logger = mocker.Mock()
    client = ClassificationClient(SERVER_URL, logger=logger)

    with pytest.raises(ValidationError):
        client.classify("T", meta_values=None)

    assert not requests_mock.called
    logger.exception.assert_not_called()


def test_query_logs_exceptions(requests_mock, mocker):
    logger = mocker.Mock()
    client = ClassificationClient(SERVER_URL, logger=logger)
    requests_mock.get(f"{SERVER_URL}?operation=version", status_code=503)

    with pytest.raises(FatalTransportError):
        client.get_version()

    logger.exception.assert_called_once()
