"""
Interactive Plan

The feature checklist offered before the first generation. The user toggles
options, then confirms; confirmation turns the selected labels into the
prompt that starts development.
"""

from typing import List, Literal

from pydantic import BaseModel, Field


class PlanError(Exception):
    """Raised when a plan intent cannot be applied (no active plan, bad section index)."""


class PlanOption(BaseModel):
    id: str
    label: str
    selected: bool = False


class PlanSection(BaseModel):
    title: str
    emoji: str = ""
    options: List[PlanOption] = Field(default_factory=list)


class PlanDetails(BaseModel):
    title: str = ""
    description: str = ""
    sections: List[PlanSection] = Field(default_factory=list)


class InteractivePlan(BaseModel):
    """A proposal shown before the first real generation."""
    type: Literal["interactive-plan"] = "interactive-plan"
    message: str = ""
    plan: PlanDetails = Field(default_factory=PlanDetails)

    @property
    def sections(self) -> List[PlanSection]:
        return self.plan.sections

    def toggle(self, section_index: int, option_id: str) -> bool:
        """
        Flip ``selected`` on one option.

        Returns:
            True if an option was toggled, False when ``option_id`` is unknown
            in that section.

        Raises:
            PlanError: if ``section_index`` is out of range.
        """
        if not 0 <= section_index < len(self.plan.sections):
            raise PlanError(f"No plan section at index {section_index}")
        for option in self.plan.sections[section_index].options:
            if option.id == option_id:
                option.selected = not option.selected
                return True
        return False

    def selected_labels(self) -> List[str]:
        return [
            option.label
            for section in self.plan.sections
            for option in section.options
            if option.selected
        ]

    def to_development_prompt(self) -> str:
        """Natural-language prompt built from the selected features."""
        features = ", ".join(self.selected_labels())
        return f"Start development with these selected features: {features}. Build: {self.message}"


def build_planning_response(user_message: str) -> InteractivePlan:
    """Default plan offered on the first turn of a conversation."""
    return InteractivePlan(
        message=user_message,
        plan=PlanDetails(
            title="Let's build your application!",
            description=f"I'll help you create: **{user_message}**",
            sections=[
                PlanSection(title="Backend Components", emoji="🔧", options=[
                    PlanOption(id="entities", label="Database entities and relationships", selected=True),
                    PlanOption(id="services", label="OData services with CRUD operations", selected=True),
                    PlanOption(id="business-logic", label="Business logic and validations", selected=True),
                    PlanOption(id="sample-data", label="Sample data for testing", selected=True),
                ]),
                PlanSection(title="Frontend Options", emoji="🎨", options=[
                    PlanOption(id="fiori", label="Fiori Elements (ListReport + ObjectPage) - Quick setup",
                               selected=True),
                    PlanOption(id="sapui5", label="Custom SAPUI5 views - Full control", selected=False),
                ]),
                PlanSection(title="Additional Features", emoji="✨", options=[
                    PlanOption(id="auth", label="Authentication and authorization", selected=False),
                    PlanOption(id="search", label="Advanced search and filtering", selected=True),
                    PlanOption(id="export", label="Export/Import functionality", selected=False),
                    PlanOption(id="workflows", label="Custom actions and workflows", selected=False),
                ]),
            ],
        ),
    )
