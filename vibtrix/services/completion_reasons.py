"""Competition completion reasons.

Every way a competition can end early is described by a trigger kind and
whether it fired on the first round. The message table below is the only
place the user-facing wording lives.
"""

from __future__ import annotations

from enum import Enum


class CompletionTrigger(str, Enum):
    NO_PARTICIPANTS = "no_participants"
    NO_SUBMISSIONS = "no_submissions"
    NO_QUALIFIERS = "no_qualifiers"


_NO_ONE_JOINED = "No one joined this competition, that's why it ended."

COMPLETION_MESSAGES: dict[tuple[CompletionTrigger, bool], str] = {
    (CompletionTrigger.NO_PARTICIPANTS, True): _NO_ONE_JOINED,
    (CompletionTrigger.NO_PARTICIPANTS, False): _NO_ONE_JOINED,
    (CompletionTrigger.NO_SUBMISSIONS, True): (
        "No participants submitted posts for the competition. No winner declared."
    ),
    (CompletionTrigger.NO_SUBMISSIONS, False): (
        "No participants available in {round_name}. No winner declared."
    ),
    (CompletionTrigger.NO_QUALIFIERS, True): (
        "No participants met the minimum requirements to pass the first round. No winner declared."
    ),
    (CompletionTrigger.NO_QUALIFIERS, False): (
        "No participants qualified from {round_name}. No winner declared."
    ),
}


def completion_reason(trigger: CompletionTrigger, *, is_first_round: bool, round_name: str = "") -> str:
    template = COMPLETION_MESSAGES[(trigger, is_first_round)]
    return template.format(round_name=round_name)
