"""Unit tests for :mod:`claimbot.acquisition.rotation`.

Each test drives a policy the way the orchestrator does: session counters
are updated first, then the policy is told about the outcome.
"""

from __future__ import annotations

import pytest

from claimbot.acquisition.rotation import (
    EvenSplitRotation,
    Exhausted,
    ExhaustiveRotation,
    FixedRotation,
    RotationPolicy,
    build_rotation_policy,
)
from claimbot.core.exceptions import ConfigError, PoolsExhausted, RetryLimitExceeded
from claimbot.core.models import ErrorKind, ResourcePool, RotationMode
from claimbot.core.session import AcquisitionSession

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _succeed(policy: RotationPolicy, session: AcquisitionSession, pool: ResourcePool) -> None:
    session.record_attempt()
    session.record_success(pool)
    policy.record_success(session, pool)


def _fail(
    policy: RotationPolicy,
    session: AcquisitionSession,
    pool: ResourcePool,
    kind: ErrorKind = ErrorKind.RETRYABLE,
) -> None:
    session.record_attempt()
    session.record_failure(pool)
    policy.record_failure(session, pool, kind)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestBuildRotationPolicy:
    """Tests for :func:`build_rotation_policy`."""

    def test_fixed_pool_wins_over_each(self, make_spec, pools) -> None:
        policy = build_rotation_policy(make_spec(fixed_pool=pools[1].name, each=2), pools)
        assert isinstance(policy, FixedRotation)
        assert policy.pools == (pools[1],)

    def test_fixed_pool_matches_by_id(self, make_spec, pools) -> None:
        policy = build_rotation_policy(make_spec(fixed_pool="ad-3"), pools)
        assert policy.pools == (pools[2],)

    def test_each_selects_even_split(self, make_spec, pools) -> None:
        policy = build_rotation_policy(make_spec(each=2), pools)
        assert isinstance(policy, EvenSplitRotation)
        assert policy.mode is RotationMode.EVEN_SPLIT

    def test_default_is_exhaustive(self, make_spec, pools) -> None:
        assert isinstance(build_rotation_policy(make_spec(), pools), ExhaustiveRotation)

    def test_unknown_fixed_pool_raises(self, make_spec, pools) -> None:
        with pytest.raises(ConfigError, match="not found"):
            build_rotation_policy(make_spec(fixed_pool="Uocm:PHX-AD-9"), pools)

    def test_no_pools_raises(self, make_spec) -> None:
        with pytest.raises(ConfigError):
            build_rotation_policy(make_spec(), [])

    def test_even_split_target_is_each_times_pools(self, make_spec, pools) -> None:
        spec = make_spec(each=3, sum=1)
        session = build_rotation_policy(spec, pools).new_session(spec)
        assert session.target_count == 9

    def test_other_modes_target_is_sum(self, make_spec, pools) -> None:
        spec = make_spec(sum=4)
        session = build_rotation_policy(spec, pools).new_session(spec)
        assert session.target_count == 4


# ---------------------------------------------------------------------------
# Fixed
# ---------------------------------------------------------------------------


class TestFixedRotation:
    """Tests for :class:`FixedRotation`."""

    def test_always_returns_pinned_pool(self, make_spec, pools) -> None:
        spec = make_spec(fixed_pool=pools[0].name, sum=2)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        for _ in range(5):
            assert policy.next(session) == pools[0]
            _fail(policy, session, pools[0])

    def test_terminal_failure_exhausts(self, make_spec, pools) -> None:
        spec = make_spec(fixed_pool=pools[0].name)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0], ErrorKind.TERMINAL)

        result = policy.next(session)
        assert isinstance(result, Exhausted)
        assert isinstance(result.reason, PoolsExhausted)

    def test_retry_limit_counts_consecutive_failures(self, make_spec, pools) -> None:
        spec = make_spec(fixed_pool=pools[0].name, retry=2)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0])
        _fail(policy, session, pools[0])
        assert policy.next(session) == pools[0]

        _fail(policy, session, pools[0])
        result = policy.next(session)
        assert isinstance(result, Exhausted)
        assert isinstance(result.reason, RetryLimitExceeded)

    def test_success_resets_failure_counter(self, make_spec, pools) -> None:
        spec = make_spec(fixed_pool=pools[0].name, retry=1, sum=2)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0])
        _succeed(policy, session, pools[0])
        _fail(policy, session, pools[0])

        assert policy.next(session) == pools[0]

    def test_unlimited_retry_never_exhausts(self, make_spec, pools) -> None:
        spec = make_spec(fixed_pool=pools[0].name, retry=-1)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        for _ in range(200):
            _fail(policy, session, pools[0])
        assert policy.exhaustion(session) is None


# ---------------------------------------------------------------------------
# Even split
# ---------------------------------------------------------------------------


class TestEvenSplitRotation:
    """Tests for :class:`EvenSplitRotation`."""

    def test_each_three_two_pools_fills_pool_zero_first(self, make_spec, pools) -> None:
        two = pools[:2]
        spec = make_spec(each=3)
        policy = build_rotation_policy(spec, two)
        session = policy.new_session(spec)

        targeted: list[ResourcePool] = []
        while not session.done:
            pool = policy.next(session)
            assert isinstance(pool, ResourcePool)
            targeted.append(pool)
            _succeed(policy, session, pool)

        assert targeted == [two[0]] * 3 + [two[1]] * 3

    def test_failures_keep_current_pool(self, make_spec, pools) -> None:
        two = pools[:2]
        spec = make_spec(each=2)
        policy = build_rotation_policy(spec, two)
        session = policy.new_session(spec)

        _succeed(policy, session, two[0])
        for _ in range(3):
            assert policy.next(session) == two[0]
            _fail(policy, session, two[0])
        assert policy.next(session) == two[0]

    def test_cursor_restarts_at_pool_zero_after_every_success(self, make_spec, pools) -> None:
        spec = make_spec(each=2)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        # Pool 0 is removed; pool 1 becomes current.
        _fail(policy, session, pools[0], ErrorKind.TERMINAL)
        assert policy.next(session) == pools[1]
        _succeed(policy, session, pools[1])

        assert session.cursor == 0
        assert policy.next(session) == pools[1]

    def test_terminal_failure_moves_to_next_pool(self, make_spec, pools) -> None:
        spec = make_spec(each=1)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0], ErrorKind.TERMINAL)

        assert 0 in session.excluded
        assert policy.next(session) == pools[1]

    def test_retry_breach_excludes_pool(self, make_spec, pools) -> None:
        spec = make_spec(each=1, retry=0)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0])

        assert policy.next(session) == pools[1]

    def test_exhausted_with_reason_of_last_removal(self, make_spec, pools) -> None:
        two = pools[:2]
        spec = make_spec(each=1, retry=0)
        policy = build_rotation_policy(spec, two)
        session = policy.new_session(spec)

        _fail(policy, session, two[0], ErrorKind.TERMINAL)
        _fail(policy, session, two[1])

        result = policy.next(session)
        assert isinstance(result, Exhausted)
        assert isinstance(result.reason, RetryLimitExceeded)


# ---------------------------------------------------------------------------
# Exhaustive
# ---------------------------------------------------------------------------


class TestExhaustiveRotation:
    """Tests for :class:`ExhaustiveRotation`."""

    def test_cycles_in_directory_order(self, make_spec, pools) -> None:
        spec = make_spec()
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        seen = []
        for _ in range(6):
            pool = policy.next(session)
            seen.append(pool)
            _fail(policy, session, pool)

        assert seen == pools + pools

    def test_terminal_pool_excluded_from_next_round(self, make_spec, pools) -> None:
        spec = make_spec()
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0])
        _fail(policy, session, pools[1], ErrorKind.TERMINAL)
        # Still in the same round: pool 2 is tried.
        assert policy.next(session) == pools[2]
        _fail(policy, session, pools[2])

        round_two = []
        for _ in range(2):
            pool = policy.next(session)
            round_two.append(pool)
            _fail(policy, session, pool)

        assert round_two == [pools[0], pools[2]]
        assert session.round_failures == 2

    def test_excluded_pool_restored_only_after_success(self, make_spec, pools) -> None:
        spec = make_spec(sum=2)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        _fail(policy, session, pools[0], ErrorKind.TERMINAL)
        _fail(policy, session, pools[1])
        _fail(policy, session, pools[2])
        assert session.active == [1, 2]

        assert policy.next(session) == pools[1]
        _succeed(policy, session, pools[1])

        assert session.active == [0, 1, 2]
        assert session.round_failures == 0
        assert policy.next(session) == pools[0]

    def test_all_terminal_exhausts(self, make_spec, pools) -> None:
        two = pools[:2]
        spec = make_spec(retry=0)
        policy = build_rotation_policy(spec, two)
        session = policy.new_session(spec)

        _fail(policy, session, two[0], ErrorKind.TERMINAL)
        _fail(policy, session, two[1], ErrorKind.TERMINAL)

        result = policy.next(session)
        assert isinstance(result, Exhausted)
        assert isinstance(result.reason, PoolsExhausted)

    def test_retry_limit_counts_rounds(self, make_spec, pools) -> None:
        two = pools[:2]
        spec = make_spec(retry=1)
        policy = build_rotation_policy(spec, two)
        session = policy.new_session(spec)

        for pool in two:
            _fail(policy, session, pool)
        assert session.round_failures == 1
        assert policy.exhaustion(session) is None

        for pool in two:
            _fail(policy, session, pool)
        result = policy.next(session)
        assert isinstance(result, Exhausted)
        assert isinstance(result.reason, RetryLimitExceeded)

    def test_unlimited_retry_keeps_rotating(self, make_spec, pools) -> None:
        spec = make_spec(retry=-1)
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)

        for _ in range(60):
            pool = policy.next(session)
            assert isinstance(pool, ResourcePool)
            _fail(policy, session, pool)
        assert session.round_failures == 20
