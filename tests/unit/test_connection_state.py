"""버스 연결 상태 머신 / 주제 규칙 테스트"""

import pytest

from alchemist.agent.state import BusStatus, ConnectionState, validate_transition
from alchemist.models.operations import MessageKind
from alchemist.models.subjects import SubjectLayout


class TestStateTransitions:
    def test_disconnected_to_connecting(self):
        assert validate_transition(ConnectionState.DISCONNECTED, ConnectionState.CONNECTING)

    def test_connecting_retry(self):
        assert validate_transition(ConnectionState.CONNECTING, ConnectionState.CONNECTING)

    def test_connecting_to_connected(self):
        assert validate_transition(ConnectionState.CONNECTING, ConnectionState.CONNECTED)

    def test_connecting_gives_up_to_disconnected(self):
        assert validate_transition(ConnectionState.CONNECTING, ConnectionState.DISCONNECTED)

    def test_connected_to_disconnected(self):
        assert validate_transition(ConnectionState.CONNECTED, ConnectionState.DISCONNECTED)

    def test_connected_to_draining(self):
        assert validate_transition(ConnectionState.CONNECTED, ConnectionState.DRAINING)

    def test_draining_only_to_disconnected(self):
        for state in ConnectionState:
            expected = state is ConnectionState.DISCONNECTED
            assert validate_transition(ConnectionState.DRAINING, state) is expected

    def test_invalid_disconnected_to_connected(self):
        assert not validate_transition(ConnectionState.DISCONNECTED, ConnectionState.CONNECTED)

    def test_invalid_connected_to_connecting(self):
        assert not validate_transition(ConnectionState.CONNECTED, ConnectionState.CONNECTING)


class TestBusStatus:
    def test_connecting_label_carries_attempt(self):
        assert BusStatus(ConnectionState.CONNECTING, 3).label() == "connecting(3)"

    def test_labels(self):
        assert BusStatus(ConnectionState.CONNECTED).label() == "connected"
        assert BusStatus(ConnectionState.DISCONNECTED).label() == "disconnected"

    def test_draining_still_connected(self):
        assert BusStatus(ConnectionState.DRAINING).is_connected
        assert not BusStatus(ConnectionState.CONNECTING, 1).is_connected


class TestSubjectLayout:
    layout = SubjectLayout("cim.agent.alchemist", "cim.dialog.alchemist")

    @pytest.mark.parametrize(
        ("subject", "expected"),
        [
            ("cim.agent.alchemist.commands.explain_concept", (MessageKind.COMMAND, "explain_concept")),
            ("cim.agent.alchemist.queries.list_concepts", (MessageKind.QUERY, "list_concepts")),
            ("cim.agent.alchemist.health", (MessageKind.HEALTH, "")),
            ("cim.dialog.alchemist.abc-123", (MessageKind.DIALOG, "abc-123")),
            ("cim.agent.alchemist.events.explain_concept", None),
            ("cim.agent.alchemist.commands.", None),
            ("other.subject", None),
        ],
    )
    def test_classify(self, subject, expected):
        assert self.layout.classify(subject) == expected

    def test_builders(self):
        assert self.layout.command("x") == "cim.agent.alchemist.commands.x"
        assert self.layout.event("error") == "cim.agent.alchemist.events.error"
        assert self.layout.inbox("g1") == "cim.agent.alchemist.inbox.g1"
        assert self.layout.dialog("s") == "cim.dialog.alchemist.s"

    def test_inbound_patterns(self):
        assert self.layout.inbound_patterns() == (
            "cim.agent.alchemist.commands.*",
            "cim.agent.alchemist.queries.*",
            "cim.agent.alchemist.health",
            "cim.dialog.alchemist.*",
        )
