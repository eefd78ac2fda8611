"""API tests for teams, invitations and membership limits."""

import pytest


async def create_team(client, name="Core", **settings):
    body = {"name": name}
    if settings:
        body["settings"] = settings
    response = await client.post("/api/teams/", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def invite(client, team_id, **body):
    return await client.post(f"/api/teams/{team_id}/invitations", json=body)


@pytest.fixture
async def carol(make_client):
    return await make_client("carol")


class TestTeams:

    async def test_creator_is_owner_member(self, jane):
        team = await create_team(jane)
        assert team["owner"]["id"] == jane.user["id"]
        assert [m["role"] for m in team["members"]] == ["owner"]
        assert team["members"][0]["permissions"]["delete_team"] is True
        assert len(team["inviteCode"]) == 16

    async def test_duplicate_name_for_same_owner(self, jane):
        await create_team(jane)
        response = await jane.post("/api/teams/", json={"name": "Core"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TEAM_EXISTS"

    async def test_non_member_is_forbidden(self, jane, bob):
        team = await create_team(jane)
        response = await bob.get(f"/api/teams/{team['id']}")
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "You are not a member of this team"

    async def test_join_with_invite_code(self, jane, bob):
        team = await create_team(jane)
        joined = await bob.post(f"/api/teams/join/{team['inviteCode']}")
        assert joined.status_code == 200
        roles = {m["user"]["id"]: m["role"] for m in joined.json()["data"]["members"]}
        assert roles[bob.user["id"]] == "member"
        # plain members do not see the invite code
        assert "inviteCode" not in joined.json()["data"]

        again = await bob.post(f"/api/teams/join/{team['inviteCode']}")
        assert again.status_code == 409

    async def test_owner_cannot_be_removed(self, jane):
        team = await create_team(jane)
        response = await jane.delete(f"/api/teams/{team['id']}/members/{jane.user['id']}")
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot remove team owner"

    async def test_member_can_leave(self, jane, bob):
        team = await create_team(jane)
        await bob.post(f"/api/teams/join/{team['inviteCode']}")
        response = await bob.delete(f"/api/teams/{team['id']}/members/{bob.user['id']}")
        assert response.status_code == 200
        assert (await bob.get(f"/api/teams/{team['id']}")).status_code == 403

    async def test_cannot_promote_to_owner(self, jane, bob):
        team = await create_team(jane)
        await bob.post(f"/api/teams/join/{team['inviteCode']}")
        response = await jane.put(f"/api/teams/{team['id']}/members/{bob.user['id']}", json={"role": "owner"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot promote member to owner role"

    async def test_delete_team_removes_projects(self, jane):
        team = await create_team(jane)
        project = await jane.post("/api/projects/", json={"name": "Launch", "team": team["id"]})
        assert project.status_code == 201
        assert (await jane.delete(f"/api/teams/{team['id']}")).status_code == 200
        assert (await jane.get(f"/api/projects/{project.json()['data']['id']}")).status_code == 404


class TestInvitations:

    async def test_accept_flow(self, jane, bob):
        team = await create_team(jane)
        sent = await invite(jane, team["id"], username="bob", role="admin")
        assert sent.status_code == 201
        invitation = sent.json()["data"]
        assert invitation["status"] == "pending"

        mine = await bob.get("/api/users/invitations")
        assert [i["id"] for i in mine.json()["data"]] == [invitation["id"]]

        accepted = await bob.post(f"/api/invitations/{invitation['id']}/accept")
        assert accepted.status_code == 200
        data = accepted.json()["data"]
        assert data["invitation"]["status"] == "accepted"
        roles = {m["user"]["id"]: m["role"] for m in data["team"]["members"]}
        assert roles[bob.user["id"]] == "admin"

        owner_inbox = (await jane.get("/api/notifications/")).json()["data"]
        assert [n["type"] for n in owner_inbox] == ["invitation_accepted"]
        assert owner_inbox[0]["data"]["userId"] == bob.user["id"]

        again = await bob.post(f"/api/invitations/{invitation['id']}/accept")
        assert again.status_code == 400
        assert again.json()["error"]["message"] == "Cannot accept accepted invitation"

    async def test_only_invitee_can_accept(self, jane, bob, carol):
        team = await create_team(jane)
        invitation = (await invite(jane, team["id"], username="bob")).json()["data"]
        response = await carol.post(f"/api/invitations/{invitation['id']}/accept")
        assert response.status_code == 403

    async def test_duplicate_pending_invitation(self, jane, bob):
        team = await create_team(jane)
        assert (await invite(jane, team["id"], email="bob@x.com")).status_code == 201
        response = await invite(jane, team["id"], userId=bob.user["id"])
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVITATION_EXISTS"

    async def test_deny_then_invite_again(self, jane, bob):
        team = await create_team(jane)
        invitation = (await invite(jane, team["id"], username="bob")).json()["data"]
        denied = await bob.post(f"/api/invitations/{invitation['id']}/deny")
        assert denied.json()["data"]["status"] == "denied"
        assert (await invite(jane, team["id"], username="bob")).status_code == 201

    async def test_member_cannot_invite(self, jane, bob, carol):
        team = await create_team(jane)
        await bob.post(f"/api/teams/join/{team['inviteCode']}")
        response = await invite(bob, team["id"], username="carol")
        assert response.status_code == 403

    async def test_existing_member_cannot_be_invited(self, jane, bob):
        team = await create_team(jane)
        await bob.post(f"/api/teams/join/{team['inviteCode']}")
        response = await invite(jane, team["id"], username="bob")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_MEMBER"

    async def test_unknown_invitee(self, jane):
        team = await create_team(jane)
        response = await invite(jane, team["id"], username="ghost")
        assert response.status_code == 404

    async def test_member_limit(self, jane, bob):
        team = await create_team(jane, maxMembers=1)
        response = await invite(jane, team["id"], username="bob")
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Team has reached maximum member limit of 1"

        joined = await bob.post(f"/api/teams/join/{team['inviteCode']}")
        assert joined.status_code == 400

    async def test_cancel_by_inviter(self, jane, bob):
        team = await create_team(jane)
        invitation = (await invite(jane, team["id"], username="bob")).json()["data"]
        cancelled = await jane.delete(f"/api/invitations/{invitation['id']}")
        assert cancelled.json()["data"]["status"] == "cancelled"
        response = await bob.post(f"/api/invitations/{invitation['id']}/accept")
        assert response.json()["error"]["message"] == "Cannot accept cancelled invitation"

    async def test_invitation_notifies_invitee(self, jane, bob):
        team = await create_team(jane)
        await invite(jane, team["id"], username="bob")
        notifications = await bob.get("/api/notifications/")
        body = notifications.json()
        assert body["unreadCount"] == 1
        assert body["data"][0]["type"] == "invitation_received"
        assert body["data"][0]["data"]["teamId"] == team["id"]
