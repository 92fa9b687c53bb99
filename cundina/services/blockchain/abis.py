"""
Contract ABIs.

Only the functions and events the orchestrators touch are declared:
- Registry (registration, joins, group lookups, referral codes)
- PayoutModule (advance, cashout, registration fee split)
- Block clones (one contract per group)
- ERC-20 token
"""

from typing import Any


def _arg(name: str, type_: str, indexed: bool | None = None) -> dict[str, Any]:
    item: dict[str, Any] = {"name": name, "type": type_}
    if indexed is not None:
        item["indexed"] = indexed
    return item


def _function(
    name: str,
    inputs: list[dict[str, Any]],
    outputs: list[dict[str, Any]],
    mutability: str = "view",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs,
        "stateMutability": mutability,
    }


def _event(name: str, inputs: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "event", "name": name, "anonymous": False, "inputs": inputs}


REGISTRY_ABI = [
    # Writes
    _function(
        "registerUser",
        [_arg("user", "address"), _arg("referrer", "address"), _arg("level", "uint256")],
        [],
        "nonpayable",
    ),
    _function(
        "registerAndCreateBlock",
        [_arg("user", "address"), _arg("referrer", "address"), _arg("level", "uint256")],
        [_arg("", "address")],
        "nonpayable",
    ),
    _function("createMyBlock", [_arg("center", "address")], [_arg("", "address")], "nonpayable"),
    _function("joinLevel1", [_arg("member", "address")], [], "nonpayable"),
    _function(
        "joinTargetBlock",
        [_arg("member", "address"), _arg("targetBlock", "address")],
        [],
        "nonpayable",
    ),
    # Reads
    _function("userLevel", [_arg("user", "address")], [_arg("", "uint256")]),
    _function(
        "myBlockAtLevel",
        [_arg("user", "address"), _arg("level", "uint256")],
        [_arg("", "address")],
    ),
    _function("registrationFee", [_arg("level", "uint256")], [_arg("", "uint256")]),
    _function("referrerOf", [_arg("user", "address")], [_arg("", "address")]),
    _function("getReferrer", [_arg("user", "address")], [_arg("", "address")]),
    _function("inviteSlots", [_arg("user", "address")], [_arg("", "uint256")]),
    _function("getReferralCode", [_arg("user", "address")], [_arg("", "bytes32")]),
    _function("resolveReferralCode", [_arg("code", "bytes32")], [_arg("", "address")]),
    _function("getAllUserBlocks", [_arg("user", "address")], [_arg("", "address[]")]),
    _function("getInvitedCount", [_arg("blockAddr", "address")], [_arg("", "uint256")]),
    _function(
        "findTopBlockAtLevel",
        [_arg("level", "uint256")],
        [_arg("topBlock", "address"), _arg("topBlockCreator", "address")],
    ),
    # Events
    _event(
        "UserRegistered",
        [
            _arg("user", "address", True),
            _arg("referrer", "address", True),
            _arg("level", "uint256", False),
        ],
    ),
    _event(
        "MyBlockCreated",
        [
            _arg("center", "address", True),
            _arg("level", "uint256", True),
            _arg("blockAddress", "address", False),
        ],
    ),
    _event(
        "MemberJoined",
        [
            _arg("member", "address", True),
            _arg("position", "uint256", True),
            _arg("amount", "uint256", False),
        ],
    ),
    _event(
        "InviteCountUpdated",
        [_arg("blockAddr", "address", True), _arg("newCount", "uint256", False)],
    ),
    _event(
        "BlockSettled",
        [
            _arg("blockAddress", "address", True),
            _arg("center", "address", True),
            _arg("level", "uint256", False),
            _arg("advanced", "bool", False),
            _arg("payoutTo", "address", False),
        ],
    ),
]

PAYOUT_MODULE_ABI = [
    _function(
        "advance",
        [_arg("blockAddr", "address"), _arg("center", "address"), _arg("payoutTo", "address")],
        [_arg("nextBlock", "address")],
        "nonpayable",
    ),
    _function(
        "cashout",
        [_arg("blockAddr", "address"), _arg("center", "address"), _arg("payoutTo", "address")],
        [],
        "nonpayable",
    ),
    _function(
        "disperseRegistrationFee",
        [_arg("user", "address"), _arg("level", "uint256")],
        [],
        "nonpayable",
    ),
    _event(
        "AdvanceExecuted",
        [
            _arg("center", "address", True),
            _arg("blockAddr", "address", True),
            _arg("payout", "uint256", False),
            _arg("payoutTo", "address", False),
            _arg("nextBlock", "address", False),
        ],
    ),
    _event(
        "CashoutExecuted",
        [
            _arg("center", "address", True),
            _arg("blockAddr", "address", True),
            _arg("payout", "uint256", False),
            _arg("payoutTo", "address", False),
        ],
    ),
    _event(
        "RegistrationFeeDispersed",
        [
            _arg("user", "address", True),
            _arg("level", "uint256", False),
            _arg("socCoopAmount", "uint256", False),
            _arg("treasuryAmount", "uint256", False),
        ],
    ),
]

BLOCK_ABI = [
    _function("owner", [], [_arg("", "address")]),
    _function("levelId", [], [_arg("", "uint256")]),
    _function("requiredMembers", [], [_arg("", "uint256")]),
    _function("membersCount", [], [_arg("", "uint256")]),
    _function("getMembers", [], [_arg("", "address[]")]),
    _function("contributionAmount", [], [_arg("", "uint256")]),
    _function("status", [], [_arg("", "uint8")]),
    _function("createdAt", [], [_arg("", "uint256")]),
    _function("completedAt", [], [_arg("", "uint256")]),
    _function("registry", [], [_arg("", "address")]),
]

ERC20_ABI = [
    _function("balanceOf", [_arg("account", "address")], [_arg("", "uint256")]),
    _function(
        "allowance",
        [_arg("owner", "address"), _arg("spender", "address")],
        [_arg("", "uint256")],
    ),
    _function(
        "approve",
        [_arg("spender", "address"), _arg("amount", "uint256")],
        [_arg("", "bool")],
        "nonpayable",
    ),
    _function(
        "transfer",
        [_arg("to", "address"), _arg("amount", "uint256")],
        [_arg("", "bool")],
        "nonpayable",
    ),
    _function("decimals", [], [_arg("", "uint8")]),
]


def find_event_abi(abi: list[dict[str, Any]], name: str) -> dict[str, Any]:
    """
    Look up an event entry by name.

    Raises:
        KeyError: If the ABI declares no such event
    """
    for item in abi:
        if item.get("type") == "event" and item.get("name") == name:
            return item
    raise KeyError(f"Event {name} not in ABI")
