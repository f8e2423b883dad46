"""Tests for the conversation HTTP API."""

from app.domains.conversation.models import Conversation, ConversationStatus
from app.sockets.schemas import OutboundEvent


async def _open_conversation(connect, customer_id: str = "cust-1", content: str = "hello") -> str:
    widget = connect(f"widget-{customer_id}")
    ack = await widget.emit("customer:message", {"customerId": customer_id, "content": content})
    return ack["message"]["conversationId"]


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_list_conversations(client, connect):
    first = await _open_conversation(connect, "cust-1")
    second = await _open_conversation(connect, "cust-2", content="second")

    response = await client.get("/v1/conversations")

    assert response.status_code == 200
    items = response.json()
    assert [item["id"] for item in items] == [second, first]
    assert items[0]["customerId"] == "cust-2"
    assert items[0]["unreadCount"] == 1
    assert items[0]["lastMessage"]["content"] == "second"
    assert "messages" not in items[0]


async def test_list_conversations_filters_by_status(client, connect, conversation_repo):
    await _open_conversation(connect, "cust-1")
    closed = await conversation_repo.create(
        Conversation(customer_id="cust-2", status=ConversationStatus.CLOSED)
    )

    response = await client.get("/v1/conversations", params={"status": "closed"})

    assert [item["id"] for item in response.json()] == [closed.id]


async def test_get_conversation_detail(client, connect):
    widget = connect("widget")
    for content in ("one", "two"):
        ack = await widget.emit("customer:message", {"customerId": "cust-1", "content": content})
    conversation_id = ack["message"]["conversationId"]

    response = await client.get(f"/v1/conversations/{conversation_id}")

    assert response.status_code == 200
    body = response.json()
    assert [m["content"] for m in body["messages"]] == ["one", "two"]
    assert body["lastMessage"]["content"] == "two"


async def test_get_unknown_conversation(client):
    response = await client.get("/v1/conversations/conv-404")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_close_conversation_notifies_agents(client, connect, conversation_repo):
    conversation_id = await _open_conversation(connect)
    dashboard = connect("dash")
    await dashboard.emit("agent:online", {"agentId": "agent-1"})

    response = await client.patch(f"/v1/conversations/{conversation_id}", json={"status": "closed"})

    assert response.status_code == 200
    assert response.json()["status"] == "closed"
    assert conversation_repo.items[conversation_id].status == "closed"
    assert dashboard.received(OutboundEvent.CONVERSATION_UPDATED)[-1]["status"] == "closed"


async def test_closed_customer_gets_new_conversation(client, connect):
    first = await _open_conversation(connect)
    await client.patch(f"/v1/conversations/{first}", json={"status": "closed"})

    second = await _open_conversation(connect, content="I'm back")

    assert second != first


async def test_assign_agent(client, connect, conversation_repo):
    conversation_id = await _open_conversation(connect)

    response = await client.patch(
        f"/v1/conversations/{conversation_id}", json={"agentId": "agent-2"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "assigned"
    assert body["agent"]["name"] == "Bob"


async def test_assign_unknown_agent(client, connect):
    conversation_id = await _open_conversation(connect)

    response = await client.patch(
        f"/v1/conversations/{conversation_id}", json={"agentId": "ghost"}
    )

    assert response.status_code == 404


async def test_reopen_blocked_while_customer_has_active_conversation(client, connect):
    first = await _open_conversation(connect)
    await client.patch(f"/v1/conversations/{first}", json={"status": "closed"})
    second = await _open_conversation(connect, content="new issue")

    response = await client.patch(f"/v1/conversations/{first}", json={"status": "open"})

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "ACTIVE_CONVERSATION_EXISTS"
    assert error["details"]["conversation_id"] == second


async def test_reopen_allowed_without_other_active_conversation(client, connect):
    conversation_id = await _open_conversation(connect)
    await client.patch(f"/v1/conversations/{conversation_id}", json={"status": "closed"})

    response = await client.patch(
        f"/v1/conversations/{conversation_id}", json={"status": "open"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "open"
