"""SequenceService: locked counter rows, strictly increasing values."""

from society_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test_seq") == 1

    def test_values_increase(self, session):
        service = SequenceService(session)
        values = [service.next_value("test_seq") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]
        assert service.current_value("test_seq") == 5

    def test_sequences_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("a")
        service.next_value("a")
        assert service.next_value("b") == 1

    def test_unknown_sequence_has_no_current_value(self, session):
        assert SequenceService(session).current_value("never_used") is None

    def test_rollback_returns_the_value(self, session):
        service = SequenceService(session)
        service.next_value("test_seq")
        savepoint = session.begin_nested()
        service.next_value("test_seq")
        savepoint.rollback()
        assert service.next_value("test_seq") == 2
