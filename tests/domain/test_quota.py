"""
Daily quota decision tests.

Property: a batch is accepted iff selection_size + used_today <= limit, and
a rejected batch leaves usage unchanged.
"""

from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from society_kernel.domain.quota import (
    QuotaScope,
    evaluate_quota,
    exempt_decision,
    quota_scope_key,
)
from society_kernel.domain.roles import Actor, Role

LIMIT = 200


class TestEvaluateQuota:

    def test_exact_fit_is_accepted(self):
        decision = evaluate_quota(150, 50, LIMIT)
        assert decision.accepted
        assert decision.used_after == LIMIT

    def test_one_over_is_rejected(self):
        decision = evaluate_quota(151, 50, LIMIT)
        assert not decision.accepted
        assert decision.remaining == 150
        assert decision.used_after == 50

    def test_205_with_50_used(self):
        decision = evaluate_quota(205, 50, LIMIT)
        assert not decision.accepted
        assert decision.remaining == 150

    def test_empty_batch_always_fits(self):
        assert evaluate_quota(0, LIMIT, LIMIT).accepted

    def test_negative_input_is_an_error(self):
        with pytest.raises(ValueError):
            evaluate_quota(-1, 0, LIMIT)

    @settings(max_examples=300)
    @given(
        selection=st.integers(min_value=0, max_value=500),
        used=st.integers(min_value=0, max_value=500),
        limit=st.integers(min_value=0, max_value=500),
    )
    def test_accepts_iff_within_limit(self, selection, used, limit):
        decision = evaluate_quota(selection, used, limit)
        assert decision.accepted == (selection + used <= limit)
        if decision.accepted:
            assert decision.used_after == used + selection
        else:
            assert decision.used_after == used
        assert decision.remaining == max(limit - used, 0)


class TestExemptDecision:

    def test_any_size_is_accepted(self):
        decision = exempt_decision(500, LIMIT)
        assert decision.accepted
        assert decision.exempt
        assert decision.requested == 500

    def test_consumes_nothing(self):
        assert exempt_decision(500, LIMIT).used_after == 0

    def test_negative_size_is_an_error(self):
        with pytest.raises(ValueError):
            exempt_decision(-1, LIMIT)


class TestScopeKey:

    def test_role_scope_shares_a_key(self):
        a = Actor(actor_id=uuid4(), role=Role.ACCOUNTANT)
        b = Actor(actor_id=uuid4(), role=Role.ACCOUNTANT)
        assert quota_scope_key(a, QuotaScope.ROLE) == quota_scope_key(b, QuotaScope.ROLE)
        assert quota_scope_key(a, QuotaScope.ROLE) == "role:accountant"

    def test_actor_scope_separates_people(self):
        a = Actor(actor_id=uuid4(), role=Role.ACCOUNTANT)
        b = Actor(actor_id=uuid4(), role=Role.ACCOUNTANT)
        assert quota_scope_key(a, QuotaScope.ACTOR) != quota_scope_key(b, QuotaScope.ACTOR)
        assert quota_scope_key(a, QuotaScope.ACTOR) == f"actor:{a.actor_id}"
