"""
Example survey builder.

Builds a small two-page contact survey exercising the logic properties:
an age-gated question, a conditionally required free-text answer, a
computed total and copy/complete triggers.
"""
from surveylogic.model import Page, Question, Survey, Trigger, TriggerType


def build_example_survey(adult_age: int = 18) -> Survey:
    survey = Survey(
        title="Household contact survey",
        description="Thanks {firstName}, this takes two minutes.",
        completed_html="<p>Thank you, {firstName}!</p>",
    )

    about = Page(
        name="about",
        title="About you",
        elements=[
            Question(name="firstName", title="First name", is_required=True),
            Question(name="age", title="Age", input_type="number"),
            Question(
                name="employment",
                type="radiogroup",
                title="Employment status",
                visible_if=f"{{age}} >= {adult_age}",
            ),
            Question(
                name="employmentOther",
                title="Please describe",
                visible_if="{employment} = 'Other'",
                required_if="{employment} = 'Other'",
            ),
        ],
    )

    household = Page(
        name="household",
        title="Your household",
        required_if="{age} >= 18",
        elements=[
            Question(name="adults", title="Adults", input_type="number"),
            Question(name="children", title="Children", input_type="number"),
            Question(
                name="householdSize",
                type="expression",
                title="Household size",
                expression="sum({adults}, {children})",
            ),
            Question(name="consent", type="boolean", title="May we contact you?"),
            Question(name="email", title="Email", input_type="email", visible_if="{consent} = true"),
            Question(name="contactEmail", title="Contact email", enable_if="false"),
        ],
    )

    survey.pages = [about, household]
    survey.triggers = [
        Trigger(
            type=TriggerType.COPY_VALUE,
            expression="{consent} = true",
            from_name="email",
            set_to_name="contactEmail",
        ),
        Trigger(
            type=TriggerType.COMPLETE,
            expression=f"{{age}} < {adult_age} and {{age}} notempty",
        ),
    ]
    return survey
