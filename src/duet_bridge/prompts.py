"""Instruction text typed into the agents' panes and written to their instruction files.

Every path passed in here is the agent-facing path, relative to the project
directory (``.bridge/<session>/...``).
"""

from typing import Optional

from duet_bridge.utils.terminal import one_line

QUEUED_NOTES_CONTEXT_LIMIT = 300


# ── Instruction files ─────────────────────────────────────────────────────


def build_instructions(
    label: str,
    partner: str,
    bridge_path: str,
    config_file: str,
    explore: bool = False,
) -> str:
    """Standing instructions for one agent, written to ``instructions_<label>.md``.

    Roles swap between tasks in explore mode, so every agent gets both the
    implementing and the reviewing workflow.
    """
    own = label.lower()
    other = partner.lower()
    text = f"""# Agent {label} - Pair Programming

You are **Agent {label}** in an autonomous pair programming session with **Agent {partner}**.
A bridge process relays work between you through files in `{bridge_path}/`.

## When you implement
1. Read `{bridge_path}/task.md` for the task.
2. Implement a solution using your full tools (read, write, edit, run commands).
3. When DONE, write a concise summary to `{bridge_path}/{own}_to_{other}.md` covering:
   - What you implemented (files created/modified)
   - Key design decisions and tradeoffs
   - Open questions or areas you are unsure about
4. IMPORTANT: write `{bridge_path}/{own}_to_{other}.md` as the LAST thing you do
   so the bridge knows you are finished.
5. If Agent {partner} reviewed your work (`{bridge_path}/{other}_to_{own}.md`), address every point.
6. If Agent {partner}'s review says `VERDICT: APPROVED` and you agree the task is done,
   write a final `{bridge_path}/{own}_to_{other}.md` containing `VERDICT: CONSENSUS` and
   a short summary of the final state. Do NOT continue iterating.

## When you review
1. Read `{bridge_path}/task.md` and Agent {partner}'s latest message.
2. Read the actual code files Agent {partner} created or modified.
3. Review for correctness, performance, security, edge cases and design.
4. Make direct improvements to the code where that is quicker than describing them.
5. Write your critique and a summary of your changes to the review file named in
   the bridge's message, and end it with exactly one of:
   - `VERDICT: NEEDS_WORK` if there are real issues that need fixing
   - `VERDICT: APPROVED` if the implementation is correct, secure and complete

Only approve when the code genuinely meets the task requirements. Do not
rubber-stamp, and do not nitpick style when the code is functionally solid.

## Mid-turn feedback
The bridge may interrupt you with feedback from Agent {partner} while you work.
Read the feedback file it names, adjust your approach, and continue.

## Live observation
The bridge may ask you to glance at Agent {partner}'s progress mid-turn. When asked:
- Read the snapshot file (screen + file diffs). Do not read full code files
  unless a diff looks suspicious.
- Be patient. Transient errors (typo, missing import, wrong path) are normal.
- Start the feedback file with one of:
  - `STATUS: OK` when everything looks fine
  - `STATUS: NOTE` + your observation for minor feedback, delivered at the
    next turn boundary without interrupting
  - `INTERJECT:` + urgent feedback, ONLY for serious logic errors, security
    issues or fundamentally wrong approaches. This interrupts the agent.

## Common issues & learning
- If you discover a common pitfall or project-specific pattern, add it to
  `{config_file}` in the project root so both agents benefit in future sessions.
- Read the file first and don't duplicate what's already noted.

## Guidelines
- Write real code to the project, not just to `{bridge_path}/`.
- If a command fails, try to self-correct once before giving up.
- Be direct and critical. Don't agree with Agent {partner} just to be polite,
  and don't invent problems that aren't there.
"""
    if explore:
        text += build_explore_section(bridge_path)
    return text


def build_explore_section(bridge_path: str) -> str:
    return f"""
## Proposing follow-up tasks (explore mode)
Whenever you spot gaps, missing features, improvements or research worth doing,
append a proposal to `{bridge_path}/proposals.md`, but stay focused on the
CURRENT task first. Read the file before writing so you don't duplicate an
existing proposal; refine or reprioritize one instead.

Format:
```
PROPOSAL: <short title>
REASON: <why this matters, specific about the gap or improvement>
PRIORITY: HIGH | MEDIUM | LOW
```

After the current task reaches consensus the bridge asks one of you to pick
the next proposal. Remove proposals from the file as they get completed.
"""


# ── Turn instructions ─────────────────────────────────────────────────────


def build_task_prompt(
    task_number: int, instructions_path: str, task_path: str, deliverable_path: str
) -> str:
    if task_number > 1:
        return (
            f"NEW TASK #{task_number} (you have context from previous tasks). Read {task_path} "
            f"for the new task. Build on prior work if relevant. Same protocol: write "
            f"{deliverable_path} when done."
        )
    return (
        f"Read {instructions_path} and {task_path}, then implement the task. "
        f"When finished, write your summary to {deliverable_path}."
    )


def build_review_prompt(
    initiator_label: str,
    instructions_path: str,
    task_path: str,
    deliverable_path: str,
    review_path: str,
    proposals_path: Optional[str] = None,
) -> str:
    prompt = (
        f"Read {instructions_path}, {task_path}, and {deliverable_path}. Review Agent "
        f"{initiator_label}'s code and respond. Write your review to {review_path} when done. "
        f"Include a VERDICT."
    )
    if proposals_path:
        prompt += (
            f" If you spot NEW gaps or improvements during review, add them to {proposals_path} "
            f"(read it first to avoid duplicates)."
        )
    return prompt


def build_confirm_prompt(reviewer_label: str, review_path: str, deliverable_path: str) -> str:
    return (
        f"Read {review_path}. Agent {reviewer_label} has approved your implementation. If you "
        f"agree, write a final {deliverable_path} with VERDICT: CONSENSUS and a brief summary. "
        f"If you disagree, explain why."
    )


def build_revise_prompt(reviewer_label: str, review_path: str, deliverable_path: str) -> str:
    return (
        f"Read {review_path} for Agent {reviewer_label}'s review. Address every point, improve "
        f"the code, and update {deliverable_path} when done."
    )


def build_pick_prompt(proposals_path: str, task_path: str, deliverable_path: str) -> str:
    return (
        f"Task complete. Read {proposals_path}. These are follow-up tasks both agents proposed. "
        f"Pick the highest priority one to tackle next. Write the chosen task description to "
        f"{task_path} (overwrite it). Remove that proposal from {proposals_path}. Then start "
        f"implementing with the same protocol: write {deliverable_path} when done. As you work, "
        f"if you spot NEW gaps or improvements, add them to {proposals_path} (read it first to "
        f"avoid duplicates)."
    )


def build_notes_prompt(notes_path: str) -> str:
    return (
        f"FYI: your partner noted some observations during your last turn. Read {notes_path} "
        f"and address anything relevant as you work. These are non-urgent."
    )


def build_forward_prompt(observer_label: str, feedback_path: str, deliverable_path: str) -> str:
    return (
        f"Agent {observer_label} reviewed your work-in-progress and found an issue. Read "
        f"{feedback_path} for their feedback. Address it and continue. Write your output to "
        f"{deliverable_path} when done."
    )


def build_nudge_prompt(deliverable_path: str) -> str:
    return (
        f"You've been working for a while. If you're stuck, try a different approach. "
        f"Remember to write your output to {deliverable_path} when done."
    )


# ── Scrutiny requests ─────────────────────────────────────────────────────


def build_error_scrutiny_prompt(worker_label: str, snapshot_path: str, feedback_path: str) -> str:
    return (
        f"Agent {worker_label} is hitting errors. Read {snapshot_path} for their screen. Only "
        f"read full code files if the screen alone isn't enough to diagnose. Write actionable "
        f"advice to {feedback_path}. Start with INTERJECT: if this is a serious/logic error they "
        f"can't self-correct, or STATUS: SUGGESTION if it's minor."
    )


def build_stall_scrutiny_prompt(worker_label: str, snapshot_path: str, feedback_path: str) -> str:
    return (
        f"Agent {worker_label} has been working a while with no screen changes. Read "
        f"{snapshot_path} for their screen. If they look stuck, write advice to {feedback_path} "
        f"starting with INTERJECT:. If they're running a long job (training, tests, batch "
        f"processing) and just need more time, write STATUS: OK so the bridge does not "
        f"interrupt them."
    )


def build_periodic_scrutiny_prompt(
    worker_label: str,
    snapshot_path: str,
    feedback_path: str,
    task_path: str,
    first_observation: bool = False,
    queued_notes: str = "",
) -> str:
    prompt = ""
    if first_observation:
        prompt += (
            f"NEW TASK: read {task_path} for context on what Agent {worker_label} is building. "
            f"Then "
        )
    prompt += (
        f"Glance at {snapshot_path} (screen + file diffs only). Verify the worker's approach "
        f"aligns with the task requirements and flag it if they're building the wrong thing or "
        f"missing key requirements. Do NOT read full code files unless the diff looks "
        f"suspicious."
    )
    notes = summarize_queued_notes(queued_notes)
    if notes:
        prompt += (
            f" You already noted these issues this turn (do NOT repeat them, only write a NEW "
            f"issue): {notes}."
        )
    prompt += (
        f" Write to {feedback_path} ONE of: STATUS: OK if progress looks on-track (or if the "
        f"only issues are ones you already noted). STATUS: NOTE only for NEW specific actionable "
        f"issues not already noted. INTERJECT: only for serious logic errors, security issues, "
        f"or fundamentally wrong approaches that need immediate correction."
    )
    return prompt


def summarize_queued_notes(text: str) -> str:
    lines = [line for line in (text or "").splitlines() if line.strip() and line.strip() != "---"]
    return one_line(" ".join(lines), QUEUED_NOTES_CONTEXT_LIMIT)
