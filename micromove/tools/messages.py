import random
from typing import Optional

ENCOURAGEMENTS = [
    "You've got this! 💪",
    "One step at a time.",
    "Small wins add up.",
    "Progress, not perfection.",
    "Keep the momentum going!",
    "You're doing great!",
    "Focus on just this step.",
    "Almost there!",
    "Just 5 minutes. You can do anything for 5 minutes.",
    "The hardest part is starting. You already did that.",
]

COMPLETION_MESSAGES = [
    "🎉 You crushed it!",
    "🚀 Mission accomplished!",
    "✨ Look at you go!",
    "🏆 Task demolished!",
    "💫 You made it happen!",
    "🔥 Unstoppable!",
]

STUCK_MESSAGES = [
    "No worries! Let's make it smaller.",
    "Happens to everyone. Here's an easier version:",
    "Let's shrink this down:",
    "Sometimes smaller is better:",
]

def pick(pool, rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(pool)

def format_time(seconds: int) -> str:
    """Formats seconds as M:SS."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"
