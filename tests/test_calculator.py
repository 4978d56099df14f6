"""Payout arithmetic. Pure functions, no database."""

import pytest

from contracts.services.calculator import (
    CancellationFee,
    cancellation_split,
    completion_split,
    milestone_share,
    not_completed_split,
)

FLAT_FEE = CancellationFee(kind="flat", amount=50_000)


class TestCancellationSplit:

    def test_client_cancels_on_time_pays_fee_to_artist(self):
        payout = cancellation_split(1_000_000, 30, FLAT_FEE, 10, False, "client")

        assert payout.artist_amount == 350_000
        assert payout.client_amount == 650_000

    def test_artist_cancels_late_loses_penalty_and_fee(self):
        payout = cancellation_split(1_000_000, 30, FLAT_FEE, 10, True, "artist")

        assert payout.artist_amount == 150_000
        assert payout.client_amount == 850_000

    def test_artist_cancels_on_time_pays_fee(self):
        payout = cancellation_split(1_000_000, 30, FLAT_FEE, 10, False, "artist")

        assert payout.artist_amount == 250_000

    def test_client_cancels_late_only_penalty_applies(self):
        payout = cancellation_split(1_000_000, 30, FLAT_FEE, 10, True, "client")

        assert payout.artist_amount == 200_000
        assert payout.client_amount == 800_000

    def test_negative_artist_share_is_clamped_to_zero(self):
        payout = cancellation_split(1_000_000, 5, FLAT_FEE, 10, True, "artist")

        assert payout.artist_amount == 0
        assert payout.client_amount == 1_000_000

    def test_artist_share_never_exceeds_total(self):
        payout = cancellation_split(1_000_000, 100, FLAT_FEE, 10, False, "client")

        assert payout.artist_amount == 1_000_000
        assert payout.client_amount == 0

    def test_percentage_fee_is_taken_from_total(self):
        fee = CancellationFee(kind="percentage", amount=10)

        payout = cancellation_split(1_000_000, 20, fee, 10, False, "client")

        assert payout.artist_amount == 300_000

    def test_half_cent_rounds_up_once(self):
        payout = cancellation_split(1_001, 50, None, 0, False, "client")

        assert payout.artist_amount == 501
        assert payout.client_amount == 500

    @pytest.mark.parametrize("late", [False, True])
    @pytest.mark.parametrize("initiator", ["client", "artist"])
    @pytest.mark.parametrize("fee", [
        None,
        CancellationFee("flat", 50_000),
        CancellationFee("flat", 2_000_000),
        CancellationFee("percentage", 7),
        CancellationFee("percentage", 100),
    ], ids=["no-fee", "flat", "flat-above-total", "pct", "pct-whole-total"])
    @pytest.mark.parametrize("progress", [0, 1, 50, 99, 100])
    def test_shares_always_sum_to_total(self, progress, fee, initiator, late):
        payout = cancellation_split(987_654, progress, fee, 15, late, initiator)

        assert payout.artist_amount + payout.client_amount == 987_654
        assert 0 <= payout.artist_amount <= 987_654
        assert payout.client_amount >= 0

    @pytest.mark.parametrize("progress", [-1, 101])
    def test_progress_out_of_range_is_rejected(self, progress):
        with pytest.raises(ValueError):
            cancellation_split(1_000, progress, None, 10, False, "client")

    def test_unknown_initiator_is_rejected(self):
        with pytest.raises(ValueError):
            cancellation_split(1_000, 10, None, 10, False, "admin")


class TestCompletionSplit:

    def test_on_time_completion_pays_artist_everything(self):
        payout = completion_split(1_000_000, 10, False)

        assert payout.artist_amount == 1_000_000
        assert payout.client_amount == 0

    def test_late_completion_refunds_penalty_to_client(self):
        payout = completion_split(1_000_000, 10, True)

        assert payout.artist_amount == 900_000
        assert payout.client_amount == 100_000


def test_not_completed_refunds_client_in_full():
    payout = not_completed_split(1_000_000)

    assert payout.as_dict() == {"total_amount": 1_000_000, "artist_amount": 0, "client_amount": 1_000_000}


def test_milestone_share_rounds_half_up():
    assert milestone_share(1_000_000, 30) == 300_000
    assert milestone_share(5, 50) == 3
