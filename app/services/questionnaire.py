"""Questionnaire catalogue rendered by the feedback wizard.

Submissions are not checked against it: answers for unknown section ids
are stored as sent.
"""

from typing import List

from app.models.responses import QuestionnaireSection

QUESTIONNAIRE: List[QuestionnaireSection] = [
    QuestionnaireSection(
        id="product_perception",
        title="Product Perception",
        questions=[
            "How would you describe our CG Collection in terms of quality, design, and uniqueness?",
            "Does CG Collection meet your expectations for a luxury brand? Why or why not?",
        ],
    ),
    QuestionnaireSection(
        id="pricing_value",
        title="Pricing and Value",
        questions=["Does our pricing tallies with the value of the Items?"],
    ),
    QuestionnaireSection(
        id="brand_image",
        title="Brand Image & Awareness",
        questions=[
            "Do you feel our brand stands out among other luxury fashion labels? Why or why not?",
            "What comes to mind when you think of our brand?",
        ],
    ),
    QuestionnaireSection(
        id="customer_experience",
        title="Customer Experience",
        questions=[
            "How was your experience when visiting our store/website?",
            "Was the customer service helpful, responsive, and aligned with luxury standards?",
        ],
    ),
    QuestionnaireSection(
        id="communication",
        title="Communication & Engagement",
        questions=[
            "Do you feel well-informed about our new collections or promotions?",
            "How do you prefer to hear from us (email, SMS, social media, etc.)?",
        ],
    ),
    QuestionnaireSection(
        id="shopping_behavior",
        title="Shopping Behavior",
        questions=["If you didn't make a purchase recently, what held you back?"],
    ),
    QuestionnaireSection(
        id="competitor_comparison",
        title="Competitor Comparison",
        questions=["What do you feel we should do better to improve our services?"],
    ),
]
