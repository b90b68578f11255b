"""Chapter templates and length presets."""

from __future__ import annotations

from dataclasses import dataclass

from schemas.generation import Lengte, TemplateSection


# Target word counts per length preset
WORDS_PER_LENGTE: dict[Lengte, int] = {
    "kort": 800,
    "medium": 1500,
    "lang": 2500,
}


@dataclass(frozen=True)
class Template:
    id: str
    naam: str
    beschrijving: str
    secties: tuple[TemplateSection, ...]

    @property
    def required_sections(self) -> tuple[TemplateSection, ...]:
        return tuple(s for s in self.secties if s.verplicht)


def _section(titel: str, beschrijving: str, verplicht: bool = True) -> TemplateSection:
    return TemplateSection(titel=titel, beschrijving=beschrijving, verplicht=verplicht)


TEMPLATES: tuple[Template, ...] = (
    Template(
        id="klassiek",
        naam="Klassiek",
        beschrijving="Traditionele opbouw met theorie, voorbeelden en oefeningen",
        secties=(
            _section("Inleiding", "Introductie van het onderwerp en waarom het relevant is"),
            _section("Theorie", "Uitleg van de kernconcepten"),
            _section("Voorbeelden", "Concrete voorbeelden die de theorie verduidelijken"),
            _section("Verdieping", "Uitbreiding en nuancering van de stof", False),
            _section("Opdrachten", "Oefeningen van makkelijk naar moeilijk"),
            _section("Samenvatting", "Kernpunten op een rij"),
        ),
    ),
    Template(
        id="praktisch",
        naam="Praktisch",
        beschrijving="Hands-on leren met stapsgewijze instructies",
        secties=(
            _section("Doel", "Wat ga je kunnen na dit hoofdstuk?"),
            _section("Benodigdheden", "Wat heb je nodig om te beginnen?", False),
            _section("Stap voor stap", "Duidelijke instructies om te volgen"),
            _section("Uitleg", "Waarom werkt het zo?"),
            _section("Veelgemaakte fouten", "Waar moet je op letten?", False),
            _section("Zelf proberen", "Oefen wat je hebt geleerd"),
            _section("Checklist", "Controleer of je alles beheerst"),
        ),
    ),
    Template(
        id="onderzoek",
        naam="Onderzoekend",
        beschrijving="Vanuit een vraag zelf op onderzoek",
        secties=(
            _section("Onderzoeksvraag", "De centrale vraag die we gaan beantwoorden"),
            _section("Voorkennis", "Wat weet je al over dit onderwerp?"),
            _section("Bronnen & methode", "Hoe gaan we dit onderzoeken?"),
            _section("Bevindingen", "Wat hebben we ontdekt?"),
            _section("Conclusie", "Antwoord op de onderzoeksvraag"),
            _section("Discussie", "Wat betekent dit en welke vragen blijven open?", False),
        ),
    ),
    Template(
        id="toets",
        naam="Toetsvoorbereiding",
        beschrijving="Gericht op herhaling en examentraining",
        secties=(
            _section("Leerdoelen", "Dit moet je kennen en kunnen"),
            _section("Kernbegrippen", "Belangrijke termen met uitleg"),
            _section("Theorie samengevat", "Beknopt overzicht van de stof"),
            _section("Voorbeeldvragen", "Typische vragen met uitwerking"),
            _section("Oefenopgaven", "Test jezelf"),
            _section("Tips", "Handige tips voor de toets", False),
        ),
    ),
    # Sections come from the request
    Template(
        id="custom",
        naam="Aangepast",
        beschrijving="Stel je eigen structuur samen",
        secties=(),
    ),
)

_TEMPLATES_BY_ID = {template.id: template for template in TEMPLATES}


def get_template(template_id: str) -> Template | None:
    return _TEMPLATES_BY_ID.get(template_id)
