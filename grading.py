def calculate_grade(score) -> str:
    """Letter grade for a supervision score (0-100)."""
    if 91 <= score <= 100:
        return "A"
    elif 81 <= score <= 90:
        return "B"
    elif 71 <= score <= 80:
        return "C"
    return "D"
