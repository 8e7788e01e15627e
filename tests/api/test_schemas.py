import unittest

from pydantic import ValidationError

from app.api.v1.schemas import SessionRejectRequest
from app.domain.sessions.states import RejectReason


class TestSessionRejectRequest(unittest.TestCase):

    def test_participant_reasons(self):
        self.assertEqual(
            SessionRejectRequest(reason="declined").reason, RejectReason.DECLINED
        )
        self.assertEqual(
            SessionRejectRequest(reason="cancelled").reason, RejectReason.CANCELLED
        )
        self.assertIsNone(SessionRejectRequest().reason)

    def test_server_reasons_rejected(self):
        for reason in ("timeout", "offline", "insufficient_balance", "server_restart"):
            with self.assertRaises(ValidationError):
                SessionRejectRequest(reason=reason)


if __name__ == "__main__":
    unittest.main()
