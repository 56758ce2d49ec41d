"""Today's swing thought: the same one all day, for everybody."""
from datetime import date

SWING_THOUGHTS = [
    "Breathe in, swing out.",
    "Quiet mind, smooth swing.",
    "Stay grounded, stay balanced.",
    "Turn, don't tilt.",
    "Feel the weight shift.",
    "One motion, no rush.",
    "Trust the tempo.",
    "Let the club do the work.",
    "Flow like water.",
    "Finish the swing, not the shot.",
    "Be still, then explode.",
    "Commit fully.",
    "Loose grip, loose mind.",
    "Quiet hands.",
    "See the target, not the trouble.",
    "Swing through, not to.",
    "Balance is everything.",
    "Feel, don't force.",
    "Don't guide, glide.",
    "Stay tall through impact.",
    "Be here now.",
    "Coil like a spring.",
    "Nothing extra.",
    "Swing within yourself.",
    "Target-focused, not ball-focused.",
    "Turn the shoulders, not just the arms.",
    "Keep the triangle.",
    "Eyes on the dimple.",
    "Let go of the outcome.",
    "Light grip, heavy clubhead.",
    "Slow is smooth, smooth is fast.",
    "Finish high and relaxed.",
    "Rhythm > Power.",
    "One shot at a time.",
    "Trust your motion.",
    "Clear the mind, clear the swing.",
    "Make a full turn.",
    "See the shot, be the shot.",
    "Swing like you've already hit a good one.",
    "Follow the breath.",
    "Trust the clubface.",
    "Swing with intention, not tension.",
    "Relax the jaw, relax the body.",
    "Tempo is timing, not speed.",
    "The club is an extension of your body.",
    "Don't chili-dip this like last time.",
    "Tiger would've stuck it.",
    "Just pretend this is Topgolf.",
    "Try not to grunt like a tennis player.",
    "Don't break your tee again.",
    "Swing like no one's watching... even though they are.",
    "You're not on tour. Breathe.",
    "If this goes left, it's the club's fault.",
    "Act like you know what you're doing.",
    "Easy does it... you're not Bryson.",
    "Just a little baby fade... not a full slice.",
    "If you duff it, make it look intentional.",
    "Swing like it owes you money.",
    "A good swing is better than a good excuse.",
    "Finish strong. Or at least finish upright.",
    "If nothing else, keep your shoes clean.",
]


def thought_for(day: date | None = None) -> str:
    day = day or date.today()
    seed = day.year + day.month + day.day
    return SWING_THOUGHTS[seed % len(SWING_THOUGHTS)]
