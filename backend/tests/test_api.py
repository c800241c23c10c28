from fastapi.testclient import TestClient

from backend.poker_core.main import app

client = TestClient(app)

HAND = {
    "handId": "h-9",
    "players": [
        {"playerId": "alice", "name": "Alice", "seat": 1, "startingStack": 200, "holeCards": ["Qs", "Qd"]},
        {"playerId": "bob", "name": "Bob", "seat": 2, "startingStack": 200, "holeCards": ["As", "7s"]},
    ],
    "smallBlindPlayer": "alice",
    "bigBlindPlayer": "bob",
    "smallBlind": 1,
    "bigBlind": 2,
    "communityCards": ["Ah", "Kd", "7c", "2s", "9h"],
    "actions": [
        {"phase": "preflop", "playerId": "alice", "action": "raise", "amount": 6, "potAfter": 8},
        {"phase": "preflop", "playerId": "bob", "action": "call", "amount": 6, "potAfter": 12},
        {"phase": "flop", "playerId": "bob", "action": "bet", "amount": 10, "potAfter": 22},
        {"phase": "flop", "playerId": "alice", "action": "all-in", "potAfter": 216},
        {"phase": "flop", "playerId": "bob", "action": "call", "amount": 194, "potAfter": 400},
    ],
    "buttonPlayer": "alice",
}


def test_health() -> None:
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_evaluate_returns_camel_case_record() -> None:
    resp = client.post("/api/evaluate", json={"cards": ["Ks", "Kd", "Kh", "7c", "7s", "2d", "3c"]})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["category"] == "Full House"
    assert payload["categoryRank"] == 7
    assert payload["description"] == "Full House, Kings full of Sevens"
    assert len(payload["bestFive"]) == 5


def test_core_errors_map_to_422() -> None:
    resp = client.post("/api/evaluate", json={"cards": ["As", "As", "Kd", "Qh", "Jc"]})
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "InvalidHandError"

    resp = client.post("/api/evaluate", json={"cards": ["Zz", "As", "Kd", "Qh", "Jc"]})
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "InvalidCardError"


def test_equity_on_the_turn() -> None:
    body = {
        "players": [{"playerId": "alice", "cards": ["Ah", "Kh"]}, {"playerId": "bob", "cards": ["Qs", "Qc"]}],
        "board": ["2h", "7h", "9c", "Qd"],
    }
    resp = client.post("/api/equity", json=body)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["mode"] == "exhaustive"
    assert payload["sampleSpace"] == 44
    alice = payload["players"][0]
    assert abs(alice["winProbability"] - 7 / 44) < 1e-9
    assert alice["handCategory"] == "High Card"

    assert client.post("/api/equity", json=body).json() == payload


def test_seeded_monte_carlo_equity_is_repeatable() -> None:
    body = {
        "players": [{"playerId": "alice", "cards": ["As", "Ah"]}, {"playerId": "bob"}],
        "mode": "monte_carlo",
        "samples": 500,
        "seed": 77,
    }
    first = client.post("/api/equity", json=body)
    second = client.post("/api/equity", json=body)
    assert first.status_code == 200
    assert first.json() == second.json()
    assert first.json()["samplesRun"] == 500


def test_replay_snapshot_and_out_of_range_step() -> None:
    resp = client.post("/api/replay/snapshot", json={"hand": HAND, "step": 3})
    assert resp.status_code == 200
    snapshot = resp.json()
    assert snapshot["phase"] == "flop"
    assert snapshot["pot"] == 216
    alice = next(player for player in snapshot["players"] if player["playerId"] == "alice")
    assert alice["isAllIn"] is True
    assert snapshot["communityCards"] == ["Ah", "Kd", "7c"]
    assert snapshot["nextToAct"] == "bob"

    missing = client.post("/api/replay/snapshot", json={"hand": HAND, "step": 9})
    assert missing.status_code == 404


def test_replay_snapshots_returns_one_per_action() -> None:
    resp = client.post("/api/replay/snapshots", json=HAND)
    assert resp.status_code == 200
    snapshots = resp.json()
    assert [item["step"] for item in snapshots] == [0, 1, 2, 3, 4]
    assert snapshots[-1]["lastAction"]["action"] == "call"


def test_cashout_offers() -> None:
    body = {
        "players": [
            {"playerId": "alice", "playerName": "Alice", "cards": ["Ah", "Kh"], "stack": 0, "contribution": 500},
            {"playerId": "bob", "playerName": "Bob", "cards": ["Qs", "Qc"], "stack": 0, "contribution": 500},
        ],
        "communityCards": ["2h", "7h", "9c", "Qd"],
        "pot": 1000,
        "phase": "turn",
    }
    resp = client.post("/api/cashout", json=body)
    assert resp.status_code == 200
    offers = {offer["playerId"]: offer for offer in resp.json()}
    assert offers["alice"]["recommendation"] == "accept"
    assert offers["bob"]["recommendation"] == "decline"
    assert offers["bob"]["cashoutAmount"] <= offers["bob"]["potShare"]


def test_insurance_options() -> None:
    resp = client.post("/api/insurance", json={"equity": 0.8, "potShare": 1000})
    assert resp.status_code == 200
    options = resp.json()
    assert [option["coverage"] for option in options] == [0.5, 0.75, 1.0]
    for option in options:
        assert option["ev"] <= 0

    bad = client.post("/api/insurance", json={"equity": 0.8, "potShare": 1000, "coverages": [2.0]})
    assert bad.status_code == 422


def test_rabbit_hunt_with_odds() -> None:
    body = {
        "foldedHole": ["8s", "9s"],
        "communityCards": ["Ts", "Jd", "2c"],
        "winningHole": ["Ah", "Ad"],
        "seed": 3,
        "includeOdds": True,
    }
    resp = client.post("/api/rabbit-hunt", json=body)
    assert resp.status_code == 200
    payload = resp.json()
    assert len(payload["remainingCards"]) == 2
    assert len(payload["board"]) == 5
    assert payload["odds"]["completions"] == 990
    assert isinstance(payload["wouldHaveWon"], bool)


def test_run_it_twice() -> None:
    body = {
        "holdings": {"alice": ["Ah", "Kh"], "bob": ["Qs", "Qc"]},
        "communityCards": ["2h", "7h", "9c"],
        "pot": 1001,
        "seed": 5,
    }
    resp = client.post("/api/run-it-twice", json=body)
    assert resp.status_code == 200
    payload = resp.json()
    assert len(payload["runs"]) == 2
    assert sum(payload["payouts"].values()) == 1001
    assert "swept" in payload["combinedResult"]


def test_bad_beat_distribution_and_qualification() -> None:
    body = {
        "totalJackpot": 10000,
        "loserId": "alice",
        "winnerId": "bob",
        "tablePlayerIds": ["alice", "bob", "carol", "dave"],
        "losingHole": ["Js", "Jd"],
        "winningHole": ["Qh", "Kh"],
        "board": ["Jh", "Jc", "9h", "Th", "2s"],
    }
    resp = client.post("/api/jackpot/bad-beat", json=body)
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["qualifies"] is True
    amounts = {item["playerId"]: item["amount"] for item in payload["payouts"]}
    assert amounts == {"alice": 5000, "bob": 2500, "carol": 1250, "dave": 1250}

    body["losingHole"] = ["Ts", "Td"]
    body["board"] = ["Th", "Tc", "9h", "Jh", "2s"]
    resp = client.post("/api/jackpot/bad-beat", json=body)
    assert resp.json()["qualifies"] is False
    assert resp.json()["payouts"] == []


def test_hand_history_text_and_json() -> None:
    text = client.post("/api/hand-history", json={"hand": HAND, "rake": 0})
    assert text.status_code == 200
    body = text.json()
    assert body["handId"] == "h-9"
    assert "Bob collected 400 from pot" in body["text"]

    as_json = client.post("/api/hand-history", json={"hand": HAND, "format": "json"})
    assert as_json.status_code == 200
    assert as_json.json()["rake"] == 20
    assert as_json.json()["winners"][0]["playerId"] == "bob"


def test_equity_request_limits() -> None:
    too_many = {
        "players": [{"playerId": "alice", "cards": ["As", "Ah"]}, {"playerId": "bob"}],
        "samples": 5_000_000,
    }
    assert client.post("/api/equity", json=too_many).status_code == 422

    huge = {
        "players": [{"playerId": "alice", "cards": ["As", "Ah"]}, {"playerId": "bob"}, {"playerId": "carol"}],
        "mode": "exhaustive",
    }
    resp = client.post("/api/equity", json=huge)
    assert resp.status_code == 422
    assert "exceeds the limit" in resp.json()["detail"]["message"]


def test_rabbit_hunt_cost_and_run_it_twice_checks() -> None:
    cost = client.post("/api/rabbit-hunt/cost", json={"pot": 1000, "communityCards": ["Ts", "Jd", "2c"]})
    assert cost.status_code == 200
    assert cost.json() == {"cost": 10, "cardsToReveal": 2}

    river = client.post("/api/rabbit-hunt/cost", json={"pot": 1000, "communityCards": ["Ts", "Jd", "2c", "3h", "4h"]})
    assert river.status_code == 422

    allowed = client.post(
        "/api/run-it-twice/eligibility",
        json={"communityCards": ["Ts", "Jd", "2c"], "activePlayers": 2, "allInPlayers": 1},
    )
    assert allowed.json() == {"allowed": True}

    variance = client.post("/api/run-it-twice/variance", json={"runs": 2, "equity": 0.5})
    assert variance.status_code == 200
    assert variance.json()["reductionPercent"] == 50.0


def test_straddle_ev() -> None:
    resp = client.post("/api/straddle", json={"bigBlind": 10, "straddleAmount": 20})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["recommendation"] == "marginal"
    assert abs(payload["breakEvenWinRate"] - 0.2) < 1e-9

    assert client.post("/api/straddle", json={"bigBlind": 10, "straddleAmount": 5}).status_code == 422


def test_analytics_over_recorded_hands() -> None:
    resp = client.post("/api/analytics", json={"hands": [HAND]})
    assert resp.status_code == 200
    stats = {entry["playerId"]: entry for entry in resp.json()}

    alice = stats["alice"]
    assert alice["handsPlayed"] == 1
    assert alice["vpip"] == 1.0
    assert alice["pfr"] == 1.0
    assert alice["totalProfit"] == -200
    assert alice["aggressionFactor"] is None
    assert alice["playerType"] == "lag"
    assert [leak["category"] for leak in alice["leaks"]] == ["Sample size"]

    bob = stats["bob"]
    assert bob["threeBet"] == 0.0
    assert bob["aggressionFactor"] == 1.0
    assert bob["wonAtShowdown"] == 1.0
