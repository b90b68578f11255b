"""Dutch prompt builders for chapter generation and section rewrites."""

from __future__ import annotations

from collections.abc import Sequence

from schemas.generation import ChapterForm, PriorChapter, RewriteRequest, TemplateSection
from services.generation.templates import get_template
from services.generation.token_budget import GenerationRequestParams, get_length_guidance


NIVEAU_BESCHRIJVING: dict[str, tuple[str, str]] = {
    "vmbo": (
        "vmbo-leerlingen (12-16 jaar)",
        """- Gebruik eenvoudige, alledaagse taal
- Korte zinnen (max 15 woorden per zin)
- Concrete voorbeelden uit hun dagelijks leven (sociale media, games, sport, vrienden)
- Vermijd abstracte concepten; maak alles tastbaar
- Herhaal belangrijke punten op verschillende manieren
- Stappenplannen en checklijsten werken goed""",
    ),
    "havo": (
        "havo-leerlingen (12-17 jaar)",
        """- Heldere, toegankelijke taal met ruimte voor nuance
- Gemiddelde zinslengte, afgewisseld met kortere zinnen
- Praktische voorbeelden met maatschappelijke relevantie
- Introduceer vakbegrippen met duidelijke uitleg
- Stimuleer verbanden leggen tussen theorie en praktijk""",
    ),
    "vwo": (
        "vwo-leerlingen (12-18 jaar)",
        """- Rijke, gevarieerde taal met complexere zinsstructuren
- Abstractere concepten en theoretische kaders zijn toegestaan
- Stimuleer kritisch denken en analyseren
- Verwijs naar wetenschappelijke inzichten waar relevant
- Nuance en meerdere perspectieven belichten""",
    ),
    "mbo": (
        "mbo-studenten (16-25 jaar)",
        """- Praktijkgerichte, no-nonsense taal
- Directe koppeling naar beroepspraktijk en werkcontext
- Concrete casussen en herkenbare werksituaties
- Theorie altijd verbinden met "wat heb je hieraan op de werkvloer"
- Stappenplannen en protocollen waar passend""",
    ),
    "hbo": (
        "hbo-studenten (18+ jaar)",
        """- Professionele, academisch getinte taal
- Theoretische onderbouwing met praktische toepassing
- Verwijzingen naar onderzoek en evidence-based werken
- Stimuleer reflectie op eigen handelen
- Kritische analyse van bronnen en methoden""",
    ),
    "uni": (
        "universitaire studenten (18+ jaar)",
        """- Academische taal met wetenschappelijke precisie
- Theoretische diepgang en conceptuele frameworks
- Verwijzingen naar wetenschappelijke literatuur en debatten
- Meerdere theoretische perspectieven naast elkaar
- Ruimte voor wetenschappelijke nuance en onzekerheid""",
    ),
}

LEERJAAR_AANPASSINGEN: dict[str, dict[int, str]] = {
    "vmbo": {
        1: "Dit is leerjaar 1 (brugklas). Focus op basiskennis en oriëntatie. Houd het simpel en toegankelijk.",
        2: "Dit is leerjaar 2. Bouw voort op basiskennis uit leerjaar 1. Er mag iets meer diepgang in, maar blijf concreet.",
        3: "Dit is leerjaar 3. Leerlingen bereiden zich voor op examen. Introduceer examenstof maar blijf praktisch.",
        4: "Dit is leerjaar 4 (examenjaar). Focus op examenstof en eindniveau.",
    },
    "havo": {
        1: "Dit is leerjaar 1 (brugklas). Focus op oriëntatie en basisvaardigheden.",
        2: "Dit is leerjaar 2. Verdieping van de basis. Er mogen meer verbanden gelegd worden.",
        3: "Dit is leerjaar 3. Voorbereiding op bovenbouw. Er wordt meer zelfstandigheid verwacht.",
        4: "Dit is leerjaar 4 (eerste examenjaar). Introduceer SE-stof en toetsvaardigheden.",
        5: "Dit is leerjaar 5 (eindexamenjaar). Focus op CE-stof en examenniveau.",
    },
    "vwo": {
        1: "Dit is leerjaar 1 (brugklas). Eerste kennismaking met academisch denken.",
        2: "Dit is leerjaar 2. Verdieping met ruimte voor abstractere concepten.",
        3: "Dit is leerjaar 3. Introduceer wetenschappelijke werkwijze.",
        4: "Dit is leerjaar 4. Bovenbouw start. Meer diepgang en wetenschappelijke benadering.",
        5: "Dit is leerjaar 5. Gevorderde stof met aandacht voor verbanden tussen vakgebieden.",
        6: "Dit is leerjaar 6 (eindexamenjaar). Examenniveau met academische diepgang.",
    },
    "mbo": {
        1: "Dit is leerjaar 1. Basiskwalificaties en oriëntatie op het beroep.",
        2: "Dit is leerjaar 2. Verdere specialisatie met meer praktijkgericht werken.",
        3: "Dit is leerjaar 3. Gevorderde beroepsvaardigheden.",
        4: "Dit is leerjaar 4 (afstudeerjaar). Eindkwalificaties en examenvoorbereiding.",
    },
    "hbo": {
        1: "Dit is leerjaar 1 (propedeuse). Academische basisvaardigheden en oriëntatie op het werkveld.",
        2: "Dit is leerjaar 2. Verdieping met toenemende complexiteit.",
        3: "Dit is leerjaar 3. Focus op specialisatie en toepassing in de praktijk.",
        4: "Dit is leerjaar 4 (afstudeerjaar). Eindniveau, klaar voor het werkveld.",
    },
    "uni": {
        1: "Dit is bachelor jaar 1. Wetenschappelijke basisvaardigheden en disciplinaire introductie.",
        2: "Dit is bachelor jaar 2. Verdieping in de discipline met onderzoeksvaardigheden.",
        3: "Dit is bachelor jaar 3. Bachelorscriptie en voorbereiding op master of arbeidsmarkt.",
    },
}

TITLE_PLACEHOLDER = "# [Pakkende titel voor het hoofdstuk]"
TOPIC_HEADER = "## ONDERWERP"


def build_template_structure(
    template: str, custom_sections: Sequence[TemplateSection] | None = None
) -> str:
    """Render the section outline the model must follow."""
    if custom_sections:
        sections: Sequence[TemplateSection] = custom_sections
    else:
        found = get_template(template) or get_template("klassiek")
        sections = found.secties if found and found.secties else ()

    if not sections:
        return (
            f"{TITLE_PLACEHOLDER}\n\n## Inleiding\nIntroductie van het onderwerp.\n\n"
            "## Hoofdinhoud\nDe kern van het hoofdstuk.\n\n"
            "## Afsluiting\nSamenvatting en conclusie."
        )

    body = "\n\n".join(f"## {s.titel}\n{s.beschrijving}".rstrip() for s in sections)
    return f"{TITLE_PLACEHOLDER}\n\n{body}"


def _leerdoelen_section(leerdoelen: str) -> str:
    goals = [line.strip() for line in leerdoelen.splitlines() if line.strip()]
    if not goals:
        return ""
    bullets = "\n".join(f"- {goal}" for goal in goals)
    return (
        "\n## LEERDOELEN\n"
        f"Na het bestuderen van dit hoofdstuk kan de leerling/student:\n{bullets}\n"
    )


def _context_section(context: str) -> str:
    context = context.strip()
    if not context:
        return ""
    return f"""
## PERSONALISATIE
De doelgroep heeft als interessegebied/hobby: "{context}"

Verwerk dit SUBTIEL in de tekst:
- Gebruik af en toe een voorbeeld, metafoor of vergelijking die aansluit bij "{context}"
- Doe dit 2-3 keer per hoofdstuk, niet vaker
- De hoofdinhoud blijft het onderwerp
"""


def _images_section(onderwerp: str) -> str:
    return f"""
## AFBEELDINGEN
Voeg NA elke inhoudelijke paragraaf een afbeeldingsregel toe in dit EXACTE formaat:
[AFBEELDING: engelse zoekterm]

Regels voor de zoekterm:
- Exact 2-3 Engelse woorden
- Beschrijf een SPECIFIEKE, fotografeerbare scene die past bij "{onderwerp}"
- VERMIJD generieke termen zoals: education, learning, student, classroom

NIET plaatsen na: Inleiding, Samenvatting
"""


SOURCES_SECTION = """
## BRONNEN
Sluit het hoofdstuk af met een sectie "## Bronnen" met 3-5 betrouwbare bronnen
(naam van de organisatie of auteur, titel en URL). Gebruik alleen bronnen waarvan
je zeker weet dat ze bestaan.
"""


def build_prompt(form: ChapterForm) -> str:
    """Build the chapter prompt for a single form."""
    doelgroep, taalrichtlijnen = NIVEAU_BESCHRIJVING.get(
        form.niveau, NIVEAU_BESCHRIJVING["havo"]
    )

    leerjaar_info = LEERJAAR_AANPASSINGEN.get(form.niveau, {}).get(form.leerjaar, "")
    leerjaar_section = (
        f"\n## LEERJAAR CONTEXT\n{leerjaar_info}\n"
        "Pas de moeilijkheidsgraad, diepgang en voorbeelden aan op dit leerjaar.\n"
        if leerjaar_info
        else ""
    )

    template = get_template(form.template)
    template_naam = template.naam if template else "Klassiek"
    custom = form.custom_secties if form.template == "custom" else None
    structure = build_template_structure(form.template, custom)

    images = _images_section(form.onderwerp) if form.met_afbeeldingen else ""
    sources = SOURCES_SECTION if form.met_bronnen else ""
    length = get_length_guidance(GenerationRequestParams.from_form(form)).strip()

    return f"""Je bent een ervaren onderwijsauteur die educatieve hoofdstukken schrijft. Schrijf een compleet hoofdstuk voor {doelgroep}, leerjaar {form.leerjaar}.

{TOPIC_HEADER}
{form.onderwerp}
{leerjaar_section}{_leerdoelen_section(form.leerdoelen)}{_context_section(form.context)}
## TAALRICHTLIJNEN VOOR DIT NIVEAU
{taalrichtlijnen}

## STRUCTUUR ({template_naam} template)
Lever het hoofdstuk in deze exacte structuur. Volg de secties precies zoals hieronder aangegeven:

{structure}
{images}{sources}
## LENGTE
{length}

## TAALGEBRUIK
- Schrijf in het Nederlands
- Schrijf in Markdown, niet in HTML
- Gebruik actieve zinnen
- Gebruik "je" en "jij" om de lezer aan te spreken

## BELANGRIJK
- Zorg dat alle informatie feitelijk correct is
- Geef concrete, herkenbare voorbeelden
- Maak de lesstof toepasbaar en relevant"""


def _prior_chapters_section(prior: Sequence[PriorChapter]) -> str:
    lines = []
    for number, chapter in enumerate(prior, start=1):
        line = f"{number}. **{chapter.titel}** - {chapter.onderwerp}"
        if chapter.samenvatting:
            line += f"\n   Samenvatting: {chapter.samenvatting}"
        lines.append(line)
    listing = "\n".join(lines)

    return f"""
## CONTEXT: EERDERE HOOFDSTUKKEN IN DIT HANDBOEK
Dit hoofdstuk maakt deel uit van een groter handboek. Dit zijn de eerdere hoofdstukken:

{listing}

INSTRUCTIES VOOR CONTINUÏTEIT:
- Verwijs waar relevant naar concepten uit eerdere hoofdstukken
- Bouw voort op kennis die al behandeld is, herhaal niet onnodig
- Gebruik consistente terminologie met eerdere hoofdstukken
- Dit wordt hoofdstuk {len(prior) + 1} in de reeks

"""


def build_prompt_with_context(
    form: ChapterForm, prior_chapters: Sequence[PriorChapter]
) -> str:
    """Chapter prompt with the earlier chapters inserted after the topic."""
    base = build_prompt(form)
    if not prior_chapters:
        return base

    section = _prior_chapters_section(prior_chapters)
    topic_at = base.find(TOPIC_HEADER)
    next_at = base.find("\n##", topic_at + len(TOPIC_HEADER)) if topic_at != -1 else -1
    if next_at == -1:
        return f"{base}\n{section}"
    return f"{base[:next_at]}\n{section}{base[next_at:]}"


def build_rewrite_prompt(request: RewriteRequest) -> str:
    context = f"CONTEXT: {request.context}\n\n" if request.context else ""
    return f"""Je bent een ervaren onderwijsredacteur. Je taak is om de onderstaande tekst te herschrijven volgens de gegeven instructie.

INSTRUCTIE: {request.instructie}

{context}ORIGINELE TEKST:
{request.sectie}

BELANGRIJKE REGELS:
- Behoud de markdown opmaak (headers, lijsten, etc.)
- Behoud de structuur en secties
- Pas alleen de inhoud aan volgens de instructie
- Schrijf in het Nederlands
- Als er [AFBEELDING: ...] placeholders zijn, behoud deze exact

Geef alleen de herschreven tekst terug, zonder uitleg of commentaar."""
