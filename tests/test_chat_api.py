from conftest import ADMIN_HEADERS, gemini_reply, hf_reply, http_error, network_error, openai_reply


def ask(client, route, text="2+2?", **extra):
    return client.post(f"/api/{route}", json={"messages": [{"role": "user", "content": text}], **extra})


def test_second_adapter_answers_after_http_500(client, vendor_stub):
    vendor_stub.on("deepseek", http_error(500)).on("groq-deepseek", openai_reply("4"))

    response = ask(client, "deepseek")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "4"}
    assert body["choices"][0]["finish_reason"] == "stop"
    assert body["provider"] == "groq-deepseek"
    assert body["fallback_used"] is True
    assert body["fallback_reasons"] == ["deepseek:http_500"]
    assert vendor_stub.calls == ["deepseek", "groq-deepseek"]


def test_all_network_errors_fall_back_to_template(client, vendor_stub):
    vendor_stub.on("groq", network_error).on("huggingface", network_error).on("groq-deepseek", network_error)

    response = ask(client, "groq")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["model"] == "fallback-template"
    assert body["choices"][0]["message"]["content"].startswith("That's a thoughtful question!")
    assert body["fallback_reasons"] == ["groq:network", "huggingface:network", "groq-deepseek:network"]
    assert vendor_stub.calls == ["groq", "huggingface", "groq-deepseek"]


def test_first_adapter_success_skips_the_rest(client, vendor_stub):
    vendor_stub.on("gemini", gemini_reply("Paris is the capital of France."))

    body = ask(client, "gemini", "What is the capital of France?").json()

    assert body["choices"][0]["message"]["content"] == "Paris is the capital of France."
    assert body["fallback_used"] is False
    assert "fallback_reasons" not in body
    assert body["usage"] == {"prompt_tokens": 10, "completion_tokens": 3, "total_tokens": 13}
    assert vendor_stub.calls == ["gemini"]


def test_huggingface_is_second_in_groq_chain(client, vendor_stub):
    vendor_stub.on("groq", http_error(503)).on("huggingface", hf_reply("Hello from Qwen"))

    body = ask(client, "groq", "hello").json()

    assert body["provider"] == "huggingface"
    assert body["choices"][0]["message"]["content"] == "Hello from Qwen"


def test_thinking_blocks_are_removed(client, vendor_stub):
    vendor_stub.on("perplexity", openai_reply("<think>let me see</think>\n\nThe answer is 42."))

    body = ask(client, "perplexity", "meaning of life").json()

    assert body["choices"][0]["message"]["content"] == "The answer is 42."


def test_empty_messages_rejected_without_vendor_calls(client, vendor_stub):
    response = client.post("/api/groq", json={"messages": []})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid request: messages array is required"}
    assert vendor_stub.calls == []


def test_empty_content_rejected(client, vendor_stub):
    response = ask(client, "groq", "")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Content policy violation"
    assert "Input must be a non-empty string" in body["details"]
    assert vendor_stub.calls == []


def test_invalid_json_body_is_400(client):
    response = client.post("/api/groq", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_unknown_route_is_404(client, vendor_stub):
    response = ask(client, "openai")
    assert response.status_code == 404
    assert vendor_stub.calls == []


def test_route_description_makes_no_outbound_calls(client, vendor_stub):
    response = client.get("/api/groq")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [entry["name"] for entry in data["chain"]] == ["groq", "huggingface", "groq-deepseek"]
    assert all(entry["configured"] for entry in data["chain"])
    assert data["fallback"] == "fallback-template"
    assert vendor_stub.calls == []
    assert "gsk_test_groq_key" not in response.text


def test_chat_requests_are_recorded_for_admin(client, vendor_stub):
    vendor_stub.on("perplexity", http_error(500)).on("groq", openai_reply("recorded answer"))
    ask(client, "perplexity", "record this please")

    usage = client.get("/api/admin/usage", headers=ADMIN_HEADERS).json()

    latest = usage[0]
    assert latest["route"] == "perplexity"
    assert latest["provider"] == "groq"
    assert latest["fallback_used"] is True
    assert latest["attempts"] == ["perplexity:http_500"]


def test_health_and_root(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/").json()["status"] == "ok"
