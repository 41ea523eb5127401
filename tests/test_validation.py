import pytest

from gawin_proxy.core.errors import ContentPolicyError, MalformedRequestError, ValidationError
from gawin_proxy.services.validation import ValidationService, validate_chat_request


@pytest.fixture
def service():
    return ValidationService(max_input_chars=100)


@pytest.mark.parametrize("payload", [
    {},
    {"messages": []},
    {"messages": "hello"},
    [{"role": "user", "content": "hi"}],
])
def test_missing_or_empty_messages_are_malformed(payload, service):
    with pytest.raises(MalformedRequestError) as exc_info:
        validate_chat_request(payload, service)
    assert exc_info.value.status_code == 400


def test_malformed_error_is_a_validation_error():
    assert issubclass(MalformedRequestError, ValidationError)
    assert MalformedRequestError().error == "Invalid request: messages array is required"


def test_unknown_role_is_malformed(service):
    with pytest.raises(MalformedRequestError) as exc_info:
        validate_chat_request({"messages": [{"role": "robot", "content": "beep"}]}, service)
    assert "role" in exc_info.value.details


def test_last_message_must_be_from_user(service):
    payload = {"messages": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]}
    with pytest.raises(MalformedRequestError):
        validate_chat_request(payload, service)


@pytest.mark.parametrize("content", ["", "   \n\t ", "\x01\x02", " \x00\x7f "])
def test_empty_user_content_is_rejected(content, service):
    with pytest.raises(ContentPolicyError) as exc_info:
        validate_chat_request({"messages": [{"role": "user", "content": content}]}, service)
    assert exc_info.value.error == "Content policy violation"
    assert "Input must be a non-empty string" in exc_info.value.details


def test_overlong_input_is_rejected(service):
    with pytest.raises(ContentPolicyError) as exc_info:
        validate_chat_request({"messages": [{"role": "user", "content": "a" * 101}]}, service)
    assert "maximum length" in exc_info.value.details


@pytest.mark.parametrize("text", [
    "<script>alert(1)</script>",
    "click javascript:void(0)",
    "<img src=x onerror=alert(1)>",
    "data:text/html;base64,AAAA",
])
def test_injection_patterns_are_rejected(text, service):
    with pytest.raises(ContentPolicyError):
        validate_chat_request({"messages": [{"role": "user", "content": text}]}, service)


def test_plain_words_containing_on_are_allowed(service):
    result = service.validate_text_input("Tell me about photon emission")
    assert result.is_valid


def test_valid_request_is_sanitized_and_untouched(service):
    payload = {
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "  What is\x07 2+2?  "},
        ],
        "temperature": 0.2,
        "maxTokens": 256,
    }
    validated = validate_chat_request(payload, service)
    assert validated.last_user_text == "What is 2+2?"
    assert validated.request.max_tokens == 256
    assert len(validated.messages) == 2
    assert validated.messages[-1].content == "  What is\x07 2+2?  "


def test_structured_content_uses_first_text_part(service):
    payload = {"messages": [{"role": "user", "content": [
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        {"type": "text", "text": "What is in this picture?"},
    ]}]}
    validated = validate_chat_request(payload, service)
    assert validated.last_user_text == "What is in this picture?"
    assert validated.messages[0].has_images()


def test_out_of_range_parameters_are_malformed(service):
    payload = {"messages": [{"role": "user", "content": "hi"}], "temperature": 5}
    with pytest.raises(MalformedRequestError):
        validate_chat_request(payload, service)


def test_file_upload_checks(service):
    assert service.validate_file_upload("a.png", "image/png", 1024) == []
    errors = service.validate_file_upload("a.gif", "image/gif", 11 * 1024 * 1024)
    assert len(errors) == 2
    assert errors[0].startswith("Unsupported file type: image/gif")
