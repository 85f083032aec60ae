"""Hardcoded records served when neither the live API nor the static export is usable."""

SAMPLE_BUSINESSES = [
    {
        "id": "sample1",
        "name": "Dubai Visa Solutions",
        "address": "Business Bay, Dubai, UAE",
        "category": "Visa Services",
        "phone": "+971 4 123 4567",
        "website": "dubaivisasolutions.com",
        "rating": 4.8,
        "reviewCount": 156,
        "businessStatus": "OPERATIONAL",
        "hasTargetKeyword": True,
    },
    {
        "id": "sample2",
        "name": "Emirates Immigration Consultants",
        "address": "DIFC, Dubai, UAE",
        "category": "Immigration Services",
        "phone": "+971 4 987 6543",
        "website": "emiratesimmigration.ae",
        "rating": 4.6,
        "reviewCount": 89,
        "businessStatus": "OPERATIONAL",
        "hasTargetKeyword": True,
    },
    {
        "id": "sample3",
        "name": "Al Majid PRO Services",
        "address": "Deira, Dubai, UAE",
        "category": "PRO Services",
        "phone": "+971 4 555 0123",
        "rating": 4.5,
        "reviewCount": 234,
        "businessStatus": "OPERATIONAL",
        "hasTargetKeyword": False,
    },
    {
        "id": "sample4",
        "name": "Golden Gate Visa Center",
        "address": "Bur Dubai, Dubai, UAE",
        "category": "Visa Services",
        "phone": "+971 4 321 7788",
        "rating": 4.2,
        "reviewCount": 61,
        "businessStatus": "OPERATIONAL",
        "hasTargetKeyword": True,
    },
    {
        "id": "sample5",
        "name": "Smart Document Clearing",
        "address": "Al Karama, Dubai, UAE",
        "category": "Document Clearing",
        "phone": "+971 4 888 1200",
        "rating": 3.9,
        "reviewCount": 40,
        "businessStatus": "OPERATIONAL",
        "hasTargetKeyword": False,
    },
    {
        "id": "sample6",
        "name": "Gulf Attestation Hub",
        "address": "Al Barsha, Dubai, UAE",
        "category": "Work Visa Agency",
        "phone": "+971 4 640 2211",
        "rating": 4.0,
        "reviewCount": 18,
        "businessStatus": "OPERATIONAL",
        "hasTargetKeyword": True,
    },
]

# Filler reviews shown when a business has none of its own.
FALLBACK_REVIEWS = {
    "sample1": [
        {
            "id": "fallback_1",
            "authorName": "Ahmed K.",
            "rating": 5,
            "text": "They handled my visa application professionally and efficiently.",
            "timeAgo": "2 weeks ago",
            "profilePhotoUrl": "https://ui-avatars.com/api/?name=Ahmed+K&background=4285f4",
        },
        {
            "id": "fallback_2",
            "authorName": "Sarah M.",
            "rating": 4,
            "text": "Good experience overall. The team was helpful and responsive throughout the process.",
            "timeAgo": "1 month ago",
            "profilePhotoUrl": "https://ui-avatars.com/api/?name=Sarah+M&background=34a853",
        },
    ],
    "sample2": [
        {
            "id": "fallback_3",
            "authorName": "John D.",
            "rating": 5,
            "text": "Clear advice on residency options and no hidden fees.",
            "timeAgo": "3 weeks ago",
            "profilePhotoUrl": "https://ui-avatars.com/api/?name=John+D&background=ea4335",
        },
    ],
}


def get_fallback_reviews(business_id: str) -> list:
    return list(FALLBACK_REVIEWS.get(business_id, []))
