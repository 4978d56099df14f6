from datetime import timedelta

import pytest
from django.urls import reverse
from rest_framework import status

from contracts.models import CancelTicket, Contract, ResolutionTicket
from contracts.services import tickets, uploads
from tests.conftest import PASSWORD


@pytest.mark.django_db
class TestAuth:

    def test_login_returns_jwt_pair(self, api_client, client_user):
        response = api_client.post(
            reverse("auth:login"), {"email": client_user.email, "password": PASSWORD}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert "access" in response.data
        assert "refresh" in response.data
        assert response.data["is_admin"] is False

    def test_bearer_token_authenticates(self, api_client, client_user):
        login = api_client.post(
            reverse("auth:login"), {"email": client_user.email, "password": PASSWORD}, format="json"
        )
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")

        response = api_client.get(reverse("auth:me"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["email"] == client_user.email

    def test_anonymous_requests_are_rejected(self, api_client):
        response = api_client.get(reverse("contracts:contract-list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestContractEndpoints:

    def test_list_shows_only_own_contracts(self, auth_client, contract, client_user, outsider):
        mine = auth_client(client_user).get(reverse("contracts:contract-list"))
        theirs = auth_client(outsider).get(reverse("contracts:contract-list"))

        assert mine.data["count"] == 1
        assert mine.data["results"][0]["my_role"] == "client"
        assert theirs.data["count"] == 0

    def test_admin_sees_every_contract(self, auth_client, contract, admin_user):
        response = auth_client(admin_user).get(reverse("contracts:contract-list"))

        assert response.data["count"] == 1

    def test_create_funds_escrow(self, auth_client, client_user, artist_user, now):
        payload = {
            "client": client_user.pk,
            "artist": artist_user.pk,
            "deadline_at": (now + timedelta(days=14)).isoformat(),
            "base_price_cents": 200_000,
            "option_fees_cents": 10_000,
            "flow": "milestone",
            "milestones": [
                {"title": "Sketch", "percent": 40},
                {"title": "Final", "percent": 60},
            ],
        }

        response = auth_client(client_user).post(reverse("contracts:contract-list"), payload, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["total_cents"] == 210_000
        assert [m["status"] for m in response.data["milestones"]] == ["in_progress", "pending"]
        contract = Contract.objects.get(pk=response.data["id"])
        assert contract.escrow_transactions.count() == 1

    def test_cannot_create_contract_for_others(self, auth_client, client_user, artist_user, outsider, now):
        payload = {
            "client": client_user.pk,
            "artist": artist_user.pk,
            "deadline_at": (now + timedelta(days=14)).isoformat(),
            "base_price_cents": 200_000,
        }

        response = auth_client(outsider).post(reverse("contracts:contract-list"), payload, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error"] == "unauthorized"

    def test_invalid_milestones_are_a_bad_request(self, auth_client, client_user, artist_user, now):
        payload = {
            "client": client_user.pk,
            "artist": artist_user.pk,
            "deadline_at": (now + timedelta(days=14)).isoformat(),
            "base_price_cents": 200_000,
            "flow": "milestone",
            "milestones": [{"title": "Sketch", "percent": 40}],
        }

        response = auth_client(client_user).post(reverse("contracts:contract-list"), payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"] == "invalid_request"

    def test_payout_preview(self, auth_client, contract, client_user):
        url = reverse("contracts:contract-payout-preview", args=[contract.pk])

        response = auth_client(client_user).get(url, {"initiated_by": "client", "work_progress": 30})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["artist_amount"] == 350_000
        assert response.data["client_amount"] == 650_000

    def test_outsider_cannot_preview(self, auth_client, contract, outsider):
        url = reverse("contracts:contract-payout-preview", args=[contract.pk])

        response = auth_client(outsider).get(url, {"initiated_by": "client"})

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestTicketEndpoints:

    def test_cancel_ticket_lifecycle(self, auth_client, contract, client_user, artist_user):
        created = auth_client(client_user).post(
            reverse("contracts:cancel-ticket-list"), {"contract": contract.pk, "reason": "Budget cut"}, format="json"
        )
        assert created.status_code == status.HTTP_201_CREATED
        assert created.data["status"] == "pending"

        duplicate = auth_client(artist_user).post(
            reverse("contracts:cancel-ticket-list"), {"contract": contract.pk, "reason": "Me too"}, format="json"
        )
        assert duplicate.status_code == status.HTTP_409_CONFLICT
        assert duplicate.data["error"] == "conflict"

        responded = auth_client(artist_user).post(
            reverse("contracts:cancel-ticket-respond", args=[created.data["id"]]),
            {"decision": "accept"},
            format="json",
        )
        assert responded.status_code == status.HTTP_200_OK
        assert responded.data["status"] == "accepted"

    def test_unknown_contract_is_not_found(self, auth_client, client_user):
        response = auth_client(client_user).post(
            reverse("contracts:cancel-ticket-list"), {"contract": 424242, "reason": "Nope"}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error"] == "not_found"

    def test_late_response_is_gone(self, auth_client, contract, client_user, artist_user, now):
        ticket = tickets.create_cancel_ticket(
            contract.pk, client_user, reason="Budget cut", now=now - timedelta(hours=72)
        )

        response = auth_client(artist_user).post(
            reverse("contracts:cancel-ticket-respond", args=[ticket.pk]), {"decision": "reject"}, format="json"
        )

        assert response.status_code == status.HTTP_410_GONE
        assert response.data["error"] == "window_closed"
        assert CancelTicket.objects.get(pk=ticket.pk).status == "forced_accepted"

    def test_revision_request_on_contract_without_revisions(self, auth_client, contract, client_user):
        response = auth_client(client_user).post(
            reverse("contracts:revision-ticket-list"),
            {"contract": contract.pk, "description": "Fix hands"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"] == "policy_violation"


@pytest.mark.django_db
class TestUploadAndDisputeEndpoints:

    def test_final_upload_review(self, auth_client, contract, client_user, artist_user):
        created = auth_client(artist_user).post(
            reverse("contracts:final-upload-list"),
            {"contract": contract.pk, "images": ["done.png"]},
            format="json",
        )
        assert created.status_code == status.HTTP_201_CREATED

        reviewed = auth_client(client_user).post(
            reverse("contracts:final-upload-review", args=[created.data["id"]]),
            {"decision": "accept"},
            format="json",
        )

        assert reviewed.status_code == status.HTTP_200_OK
        assert reviewed.data["status"] == "accepted"
        assert Contract.objects.get(pk=contract.pk).status == "completed"

    def test_images_are_validated_by_the_serializer(self, auth_client, contract, artist_user):
        response = auth_client(artist_user).post(
            reverse("contracts:progress-upload-list"), {"contract": contract.pk, "images": []}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_dispute_and_admin_resolution(
        self, auth_client, contract, client_user, artist_user, admin_user, now
    ):
        final = uploads.create_final_upload(
            contract.pk, artist_user, images=["done.png"], now=now - timedelta(hours=2)
        )
        uploads.review_upload(
            "final", final.pk, client_user, decision="reject", reason="Wrong colours", now=now - timedelta(hours=2)
        )

        opened = auth_client(artist_user).post(
            reverse("contracts:resolution-ticket-list"),
            {
                "contract": contract.pk,
                "target_type": "final_upload",
                "target_id": final.pk,
                "description": "Colours match the reference sheet.",
                "proof_images": ["reference.png"],
            },
            format="json",
        )
        assert opened.status_code == status.HTTP_201_CREATED
        resolution_id = opened.data["id"]

        countered = auth_client(client_user).post(
            reverse("contracts:resolution-ticket-counterproof", args=[resolution_id]),
            {"description": "The reference sheet says teal, this is green."},
            format="json",
        )
        assert countered.data["status"] == "awaiting_review"

        forbidden = auth_client(client_user).post(
            reverse("contracts:resolution-ticket-resolve", args=[resolution_id]),
            {"decision": "favor_client"},
            format="json",
        )
        assert forbidden.status_code == status.HTTP_403_FORBIDDEN

        resolved = auth_client(admin_user).post(
            reverse("contracts:resolution-ticket-resolve", args=[resolution_id]),
            {"decision": "favor_artist", "resolution_note": "Matches the sheet"},
            format="json",
        )
        assert resolved.status_code == status.HTTP_200_OK
        assert ResolutionTicket.objects.get(pk=resolution_id).status == "resolved"
        assert Contract.objects.get(pk=contract.pk).status == "completed"


@pytest.mark.django_db
class TestEscrowEndpoint:

    def test_parties_see_their_ledger(self, auth_client, contract, client_user, outsider):
        mine = auth_client(client_user).get(reverse("payments:escrow-transaction-list"))
        theirs = auth_client(outsider).get(reverse("payments:escrow-transaction-list"))

        assert mine.data["count"] == 1
        assert mine.data["total_pages"] == 1
        assert mine.data["results"][0]["kind"] == "hold"
        assert mine.data["results"][0]["contract_number"] == contract.number
        assert theirs.data["count"] == 0
