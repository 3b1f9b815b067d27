"""Reply templates.

Replies are plain text with light markdown emphasis, the way clients on the network render notes.
"""

from __future__ import annotations

from dataclasses import dataclass

from fitbounty.challenges.models import Challenge, ChallengeKind, ChallengeStatus
from fitbounty.intent.schema import CommandError, ErrorKind
from fitbounty.payments.client import Invoice

HELP_HINT = "Reply with '@fitbounty help' for instructions."

UNKNOWN_COMMAND = f"🤖 I didn't understand that command. {HELP_HINT}"
GENERIC_ERROR = "🤖 Sorry, I encountered an error processing your request. Please try again."
NO_CHALLENGE = (
    "📊 You don't have any active challenges. "
    "Create one with '@fitbounty' and describe your fitness goal!"
)
NO_BOUNTY_TARGET = (
    "💰 I couldn't find a bounty challenge to pledge to. "
    "Reply directly to the challenge post with '@fitbounty bounty [amount] sats'."
)

HELP = """🤖 **FitBounty Help**

**🎯 Create Penalty Bet:**
"I have to do [X] [exercise] for [Y] days OR I owe @friend [amount] sats @fitbounty"

**💰 Create Bounty Challenge:**
"I want to do [X] [exercise] daily for [Y] days @fitbounty"
(Friends can then pledge bounties)

**📊 Check Status:**
"@fitbounty status" or "how's my challenge?"

**🏆 Leaderboard:**
"@fitbounty leaderboard"

**Examples:**
- "I have to do 20 pushups for 7 days OR I owe @alice 1000 sats @fitbounty"
- "Going to do 50 squats daily for 5 days @fitbounty"
- "Challenge: 100 burpees for 3 days @fitbounty"

**Advanced Examples:**
- "If I don't do 30 burpees daily for a week, @bob gets 500 sats @fitbounty"
- "25 situps for 5 days or pay @carol 2000 sats @fitbounty"
- "I must do 15 pullups daily for 10 days or @dave receives 1500 sats @fitbounty"

Ready to get fit and earn sats? 💪⚡"""

_STATUS_LABELS: dict[ChallengeStatus, tuple[str, str]] = {
    ChallengeStatus.pending_payment: ("⏳", "Pending Payment"),
    ChallengeStatus.active: ("🔥", "Active"),
    ChallengeStatus.completed: ("🏆", "Completed"),
    ChallengeStatus.failed: ("❌", "Failed"),
    ChallengeStatus.expired: ("⌛", "Expired"),
}

_MEDALS = ("🥇", "🥈", "🥉")


@dataclass(frozen=True)
class LeaderboardEntry:
    owner_identity: str
    completed: int
    sats_earned: int


@dataclass(frozen=True)
class LeaderboardStats:
    total_challenges: int
    success_rate: int
    total_sats_staked: int


def display_identity(identity: str) -> str:
    """`@name`, with long npub/hex identities shortened."""

    if identity.startswith("npub") or len(identity) == 64:
        return f"@{identity[:12]}..."
    return f"@{identity}"


def progress_bar(completed: int, total: int) -> str:
    total = max(total, 1)
    done = min(max(completed, 0), total)
    percent = round(done / total * 100)
    return f"{'█' * done}{'░' * (total - done)} {percent}%"


def penalty_accepted(challenge: Challenge, invoice: Invoice) -> str:
    recipient = display_identity(challenge.penalty.recipient_identity) if challenge.penalty else "@?"
    amount = challenge.penalty.amount_sats if challenge.penalty else 0

    return f"""💸 **Penalty Bet Accepted!**
📋 **Challenge:** {challenge.exercise.full_description}
💰 **Penalty:** {amount} sats to {recipient}
⏰ **Duration:** {challenge.duration.days} days from payment

🔒 **To activate your challenge, pay this invoice:**
`{invoice.payment_request}`

**Your sats will be held in escrow:**
- ✅ Challenge completed: Full refund to you
- ❌ Challenge failed: Payment sent to {recipient}
⏱️ Challenge expired: Full refund to you
⚡ Invoice expires in 1 hour
💪 Pay now to start your accountability journey!
Challenge ID: `{challenge.id}`"""


def bounty_created(challenge: Challenge) -> str:
    pool = challenge.bounty.amount_sats if challenge.bounty else 0
    return f"""🎯 **Bounty Challenge Created!**

📋 **Challenge:** {challenge.exercise.full_description}
💰 **Bounty Pool:** {pool} sats (waiting for pledges)

Friends can now pledge bounties by replying:
"@fitbounty bounty [amount] sats"

📹 **Evidence Required:** Daily video proof
⏰ **Duration:** {challenge.duration.days} days

Let's see who believes in you! 💪"""


def bounty_pledged(challenge: Challenge, amount_sats: int, invoice: Invoice) -> str:
    pool = challenge.bounty.amount_sats if challenge.bounty else amount_sats
    return f"""💰 **Bounty Pledge Received!**

Amount: {amount_sats} sats
Bounty Pool: {pool} sats for {challenge.exercise.full_description}
Status: Pending payment confirmation

Pay this invoice to lock in your bounty:
`{invoice.payment_request}`

Your sats will be held in escrow until the challenge ends."""


def challenge_status(challenge: Challenge) -> str:
    emoji, label = _STATUS_LABELS[challenge.status]
    completed = challenge.completed_days
    total = challenge.duration.days
    if challenge.status == ChallengeStatus.active:
        label = f"Active - Day {completed}/{total}"

    lines = [
        "📊 **Challenge Status**",
        f"{emoji} Status: {label}",
        f"📋 Exercise: {challenge.exercise.full_description}",
    ]
    if challenge.kind == ChallengeKind.penalty and challenge.penalty:
        lines.append(
            f"💰 Penalty: {challenge.penalty.amount_sats} sats to "
            f"{display_identity(challenge.penalty.recipient_identity)}"
        )
    elif challenge.bounty:
        lines.append(f"💰 Bounty Pool: {challenge.bounty.amount_sats} sats")

    lines += [
        "",
        f"Progress: {completed}/{total} days completed",
        progress_bar(completed, total),
    ]
    if challenge.status == ChallengeStatus.active:
        lines += ["", "📹 Submit your daily video to continue!"]
    return "\n".join(lines)


def leaderboard(entries: list[LeaderboardEntry], stats: LeaderboardStats) -> str:
    lines = ["🏆 **FitBounty Leaderboard**", "", "🥇 **Top Performers:**"]
    if entries:
        for position, entry in enumerate(entries, start=1):
            medal = _MEDALS[position - 1] if position <= len(_MEDALS) else f"{position}."
            plural = "" if entry.completed == 1 else "s"
            lines.append(
                f"{medal} {display_identity(entry.owner_identity)} - {entry.completed} "
                f"challenge{plural} completed ({entry.sats_earned:,} sats earned)"
            )
    else:
        lines.append("No completed challenges yet. Be the first!")

    lines += [
        "",
        "📈 **Challenge Stats:**",
        f"- Total challenges: {stats.total_challenges}",
        f"- Success rate: {stats.success_rate}%",
        f"- Total sats staked: {stats.total_sats_staked:,}",
        "",
        "Keep pushing! 💪",
    ]
    return "\n".join(lines)


def duplicate_challenge(challenge: Challenge | None) -> str:
    description = challenge.exercise.full_description if challenge else "your current challenge"
    if challenge is not None and challenge.status == ChallengeStatus.pending_payment:
        return (
            f"🤖 Your challenge ({description}) is still waiting for its escrow payment. "
            "Pay that invoice or let it expire before starting a new one!"
        )
    return (
        f"🤖 You already have an active challenge ({description}). "
        "Finish it before starting a new one!"
    )


def payment_unavailable() -> str:
    return "⚡ I couldn't create a Lightning invoice right now. Please try again in a few minutes."


def command_error(error: CommandError) -> str:
    if error.kind == ErrorKind.unknown_command:
        return UNKNOWN_COMMAND

    if error.kind == ErrorKind.validation:
        header = "🤖 I understood your challenge, but some details need fixing:"
    else:
        header = "🤖 I couldn't understand that request."

    lines = [header]
    lines += [f"- {message}" for message in error.errors]
    lines += ["", HELP_HINT]
    return "\n".join(lines)
