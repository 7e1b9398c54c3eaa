"""
Reference data offered to the booking forms.
"""

TAMIL_NADU_DISTRICTS = [
    "Ariyalur", "Chengalpattu", "Chennai", "Coimbatore", "Cuddalore",
    "Dharmapuri", "Dindigul", "Erode", "Kallakurichi", "Kanchipuram",
    "Kanyakumari", "Karur", "Krishnagiri", "Madurai", "Mayiladuthurai",
    "Nagapattinam", "Namakkal", "Nilgiris", "Perambalur", "Pudukkottai",
    "Ramanathapuram", "Ranipet", "Salem", "Sivaganga", "Tenkasi",
    "Thanjavur", "Theni", "Thoothukudi", "Tiruchirappalli", "Tirunelveli",
    "Tirupathur", "Tiruppur", "Tiruvallur", "Tiruvannamalai", "Tiruvarur",
    "Vellore", "Viluppuram", "Virudhunagar",
]

SCRIBE_SUBJECT_OPTIONS = {
    "tamil": "Tamil",
    "english": "English",
    "mathematics": "Mathematics",
    "science": "Science",
    "social_science": "Social Science",
    "physics": "Physics",
    "chemistry": "Chemistry",
    "biology": "Biology",
    "computer_science": "Computer Science",
    "history": "History",
    "geography": "Geography",
    "economics": "Economics",
    "commerce": "Commerce",
    "accountancy": "Accountancy",
}


def scribe_subject_label(subject_id: str) -> str:
    """Human-readable label for a scribe subject id."""
    return SCRIBE_SUBJECT_OPTIONS.get(subject_id, subject_id.replace("_", " ").title())
