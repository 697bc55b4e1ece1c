"""
Deterministic, keyword-driven text used when no language-model call is made
or when one fails.

Both generators walk an ordered category table; the first category with a
keyword contained in the lower-cased input wins.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

@dataclass(frozen=True)
class FallbackCategory:
    name: str
    keywords: Tuple[str, ...]
    steps: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self.keywords)

@dataclass(frozen=True)
class ReframeCategory:
    name: str
    keywords: Tuple[str, ...]
    reframe: str

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self.keywords)

# Priority order matters: "write an email" is a writing task.
STEP_CATEGORIES: Tuple[FallbackCategory, ...] = (
    FallbackCategory(
        name="writing",
        keywords=("write", "essay", "paper", "article", "blog"),
        steps=(
            "Open a blank document and just write the title",
            "Write one terrible sentence - it doesn't have to be good",
            "Add 2-3 bullet points of what you want to cover",
            "Expand one bullet point into a rough paragraph",
            "Read what you have and fix one thing",
            "Write one more paragraph",
            "Take a breath - you're making progress!",
        ),
    ),
    FallbackCategory(
        name="coding",
        keywords=("code", "program", "build", "implement", "fix", "bug"),
        steps=(
            "Open the project and just look at the code for 2 minutes",
            "Add a comment describing what you need to do",
            "Write the simplest possible version (even if wrong)",
            "Make one small improvement",
            "Test what you have",
            "Fix one issue you found",
            "Commit your progress (even if incomplete)",
        ),
    ),
    FallbackCategory(
        name="cleaning",
        keywords=("clean", "organize", "tidy", "sort"),
        steps=(
            "Pick ONE area to focus on (just one!)",
            "Remove obvious trash - just the easy stuff",
            "Group similar items together",
            "Put away 5 things that have a home",
            "Wipe one surface",
            "Step back and appreciate the progress",
        ),
    ),
    FallbackCategory(
        name="communication",
        keywords=("email", "reply", "message", "respond"),
        steps=(
            "Open your inbox and find the message",
            "Read it one more time",
            "Write just the greeting and first sentence",
            "Add the main point (keep it short)",
            "Write the closing",
            "Read it once, fix typos, hit send",
        ),
    ),
    FallbackCategory(
        name="study",
        keywords=("study", "learn", "read", "research"),
        steps=(
            "Gather your materials and open to the right page/section",
            "Read just the headings and subheadings",
            "Read the first paragraph slowly",
            "Write down one thing you learned",
            "Read the next section",
            "Summarize what you know so far in 2 sentences",
        ),
    ),
)

GENERIC_STEPS: Tuple[str, ...] = (
    "Spend 2 minutes just looking - no action required yet",
    "Do the absolute smallest thing you can (even if it feels silly)",
    "Build on that with one more tiny action",
    "Take a moment to see what you've accomplished",
    "One more small step",
    "Decide: continue or take a well-deserved break?",
)

REFRAME_CATEGORIES: Tuple[ReframeCategory, ...] = (
    ReframeCategory("writing", ("write", "draft", "type"),
                    "Just write ONE sentence. Any sentence. It can be terrible."),
    ReframeCategory("reading", ("read", "review", "look"),
                    "Spend exactly 60 seconds skimming. Set a timer. Stop when it rings."),
    ReframeCategory("starting", ("open", "start", "begin"),
                    "Just open the file/app. Don't do anything else. Opening = success."),
    ReframeCategory("organizing", ("organize", "clean", "sort"),
                    "Pick up exactly ONE item. Just one. Put it where it belongs."),
    ReframeCategory("messaging", ("email", "reply", "message"),
                    'Write just "Hi" and your name. That\'s the whole task.'),
    ReframeCategory("coding", ("code", "fix", "implement"),
                    "Add a single comment describing what you want to do. That's it."),
)

TASK_ECHO_LIMIT = 40
STEP_ECHO_LIMIT = 30
CLIENT_ECHO_LIMIT = 50

def match_step_category(task: str) -> Optional[FallbackCategory]:
    """Returns the highest-priority category matching the task, if any."""
    for category in STEP_CATEGORIES:
        if category.matches(task):
            return category
    return None

def generate_fallback_steps(task: str) -> List[str]:
    """Maps a task description to 5-7 canned micro-steps."""
    category = match_step_category(task)
    if category:
        return list(category.steps)
    return [f"Open everything you need for: {task[:TASK_ECHO_LIMIT]}", *GENERIC_STEPS]

def match_reframe_category(step: str) -> Optional[ReframeCategory]:
    for category in REFRAME_CATEGORIES:
        if category.matches(step):
            return category
    return None

def generate_fallback_reframe(step: str) -> str:
    """Maps a stuck step to one smaller, easier action."""
    category = match_reframe_category(step)
    if category:
        return category.reframe
    shortened = step[:STEP_ECHO_LIMIT]
    return f'Spend exactly 2 minutes on "{shortened}..." - timer stops, you stop. No pressure.'

# Used by the session controller when the breakdown/reframe call itself raises.

def client_fallback_steps(task: str) -> List[str]:
    return [
        f"Open the files/tools needed for: {task[:TASK_ECHO_LIMIT]}",
        "Spend 2 minutes just looking at what's there - no action required",
        "Do the absolute smallest thing you can",
        "Build on that with one more small piece",
        "Review and decide: continue or take a break?",
    ]

def client_fallback_reframe(step: str) -> str:
    suffix = "..." if len(step) > CLIENT_ECHO_LIMIT else ""
    return f"Just spend 2 minutes on: {step[:CLIENT_ECHO_LIMIT]}{suffix}"
