"""Finnish prompt templates used by the support, chat and training agents."""

from __future__ import annotations

from typing import List, Optional, Sequence

from helpdesk_ai.agents.base import COMPLEXITY_LABELS_FI, CommentSnapshot, TicketAnalysis

NOT_SPECIFIED = "Ei määritetty"

ANALYSIS_INSTRUCTIONS = """Olet kokenut IT-tuen analyytikko. Analysoi tiketti ja palauta JSON-objekti, jossa on kentät:
- problemCategory: ongelman tekninen kategoria (suomeksi)
- problemComplexity: täsmälleen yksi arvoista "Simple", "Moderate" tai "Complex"
- estimatedTimeToResolve: arvio ratkaisuun kuluvasta ajasta (suomeksi)
- keyInsights: 2-4 keskeistä havaintoa (suomeksi)
- possibleCauses: 2-4 todennäköistä syytä (suomeksi)
- missingInformation: tiedot, jotka vielä tarvitaan ratkaisuun (suomeksi)
- recommendedApproach: lyhyt toimintasuunnitelma (suomeksi)
- potentialSolutions: 2-3 mahdollista ratkaisua (suomeksi)"""

RESPONSE_INSTRUCTIONS = """Palauta JSON-objekti, jossa on kentät:
- responseText: valmis, ystävällinen vastaus käyttäjälle suomeksi
- nextStepsRecommendation: 2-4 seuraavaa toimenpidettä tukihenkilölle suomeksi"""

TICKET_INSTRUCTIONS = """Palauta JSON-objekti, jossa on kentät:
- title: tiketin otsikko (5-100 merkkiä)
- description: käyttäjän oma kuvaus ongelmasta
- device: laite tai ohjelmisto, jota ongelma koskee
- additionalInfo: lisätiedot, esimerkiksi virheilmoitukset tai jo kokeillut toimenpiteet
- priority: yksi arvoista "LOW", "MEDIUM", "HIGH" tai "CRITICAL"
- responseFormat: yksi arvoista "TEKSTI", "KUVA" tai "VIDEO" (muotoa, jossa käyttäjä toivoo ohjeet)"""


def format_comment_history(comments: Optional[Sequence[CommentSnapshot]]) -> str:
    if not comments:
        return ""
    lines: List[str] = []
    for comment in comments:
        stamp = comment.created_at.strftime("%d.%m.%Y klo %H.%M") if comment.created_at else "aika tuntematon"
        lines.append(f"- {stamp} - {comment.author_name}: {comment.content}")
    return "Kommenttihistoria:\n" + "\n".join(lines)


def build_analysis_prompt(
    *,
    title: str,
    description: str,
    category: Optional[str],
    status: Optional[str],
    priority: Optional[str],
    comments: Optional[Sequence[CommentSnapshot]],
) -> str:
    parts = [
        "Analysoi seuraava IT-tuen tiketti.",
        "",
        f"Otsikko: {title}",
        f"Kuvaus: {description}",
        f"Kategoria: {category or NOT_SPECIFIED}",
        f"Tila: {status or NOT_SPECIFIED}",
        f"Prioriteetti: {priority or NOT_SPECIFIED}",
    ]
    history = format_comment_history(comments)
    if history:
        parts.extend(["", history])
    parts.extend(
        [
            "",
            "Kuvaa ongelman kategoria, vaativuus, aika-arvio, keskeiset havainnot, mahdolliset syyt, "
            "puuttuvat tiedot ja suositeltu lähestymistapa.",
        ]
    )
    if history:
        parts.append("Huomioi kommenttihistoria analyysissa.")
    return "\n".join(parts)


def build_response_prompt(
    *,
    title: str,
    description: str,
    category: Optional[str],
    analysis: TicketAnalysis,
    knowledge: Sequence[str],
    comments: Optional[Sequence[CommentSnapshot]],
) -> str:
    complexity = COMPLEXITY_LABELS_FI.get(analysis.problem_complexity, analysis.problem_complexity.value)
    parts = [
        "Kirjoita rento ja ystävällinen vastaus seuraavaan IT-tuen tikettiin.",
        "Vastaaja on tukipalvelua opetteleva IT-opiskelija, ei yrityksen virallinen tukihenkilö.",
        "",
        f"Tiketin otsikko: {title}",
        f"Tiketin kuvaus: {description}",
        f"Kategoria: {category or NOT_SPECIFIED}",
        "",
        "Analyysi:",
        f"- Ongelman tyyppi: {analysis.problem_category}",
        f"- Vaativuus: {complexity}",
        f"- Arvioitu ratkaisuaika: {analysis.estimated_time_to_resolve}",
        f"- Keskeiset havainnot: {', '.join(analysis.key_insights)}",
        f"- Mahdolliset syyt: {', '.join(analysis.possible_causes)}",
        f"- Suositeltu lähestymistapa: {analysis.recommended_approach}",
        "",
        "Taustatietoa:",
    ]
    parts.extend(f"- {item}" for item in knowledge)
    history = format_comment_history(comments)
    if history:
        parts.extend(["", history])
    parts.extend(
        [
            "",
            "Puhuttele käyttäjää suoraan ja kirjoita suomeksi. Aloita tervehdyksellä ja kerro käsitteleväsi tikettiä.",
            "Näytä ymmärtäväsi tilanteen. Pidä sävy kaverillisena mutta asiantuntevana, ja vältä pitkiä virkkeitä "
            "sekä raskasta teknistä jargonia.",
        ]
    )
    if history:
        parts.append("Viittaa kommenttihistoriaan, jos siitä on hyötyä.")
    return "\n".join(parts)


PROGRESS_RUBRIC = """Arvioi, kuinka lähellä tukihenkilö on ongelman oikeaa ratkaisua.

EARLY: tukihenkilö ehdottaa yleisiä perustoimia tai kysyy lisätietoja tunnistamatta varsinaista ongelmaa.
PROGRESSING: ongelman alue on tunnistettu ja ehdotukset liittyvät ratkaisuun, mutta ne ovat vielä epätarkkoja.
CLOSE: juurisyy on tunnistettu ja ehdotetut toimet osuvat ratkaisuun, vain yksityiskohtia puuttuu.
SOLVED: tukihenkilö on nimennyt ratkaisevan toimenpiteen, vaikka ohje olisi lyhyt tai vaillinainen.

Arvioi joustavasti. Sanamuodon tai järjestyksen ei tarvitse vastata ratkaisukuvausta, ja moni ongelma ratkeaa usealla tavalla.
Jos oikea ohje on annettu jo aiemmin keskustelussa ja tukihenkilö nyt vain varmistaa tuloksen (esim. "toimiiko?" tai "auttoiko?"), arvio on SOLVED.
Arvioi koko keskustelua, älä pelkkää viimeisintä kommenttia."""


def build_progress_prompt(
    *,
    title: str,
    description: str,
    device: str,
    additional_info: str,
    solution: str,
    conversation_history: str,
    support_comment: str,
) -> str:
    return "\n".join(
        [
            PROGRESS_RUBRIC,
            "",
            "ONGELMA:",
            f"Otsikko: {title}",
            f"Kuvaus: {description}",
            f"Laite: {device}",
            f"Lisätiedot: {additional_info}",
            "",
            "OIKEA RATKAISU:",
            solution,
            "",
            "KESKUSTELUHISTORIA:",
            conversation_history,
            "",
            "TUKIHENKILÖN VIIMEISIN KOMMENTTI:",
            support_comment,
            "",
            "Vastaa vain yhdellä sanalla: EARLY, PROGRESSING, CLOSE tai SOLVED.",
        ]
    )


PROGRESS_BEHAVIOUR = {
    "EARLY": "Ongelma ei ole ratkennut. Kerro kokeilleesi ehdotusta tai että se ei auttanut, ja kuvaa oireita tarkemmin.",
    "PROGRESSING": "Ehdotus vei vähän eteenpäin. Kerro mitä tapahtui ja kysy tarkennusta seuraavaan vaiheeseen.",
    "CLOSE": "Ongelma on melkein ratkennut. Kerro, mikä nyt toimii ja mikä vielä puuttuu.",
    "SOLVED": "Ongelma ratkesi. Kiitä tukihenkilöä ja kerro, että kaikki toimii taas.",
    "UNKNOWN": "Reagoi tukihenkilön viestiin luontevasti ja kerro, mitä tapahtui.",
}


def build_chat_system_prompt(*, user_name: str, user_profile: str, technical_skill_level: str) -> str:
    return (
        f"Olet {user_name}, IT-tuen asiakas, joka on jättänyt tukipyynnön. Profiilisi on '{user_profile}' ja "
        f"tekninen osaamisesi on {technical_skill_level}. Vastaa aina käyttäjänä, älä koskaan tukihenkilönä, "
        "ja kirjoita suomeksi lyhyesti ja luontevasti kuten oikea käyttäjä. Älä paljasta ratkaisua itse."
    )


def build_chat_prompt(
    *,
    title: str,
    description: str,
    category: str,
    device: str,
    additional_info: str,
    progress: str,
    conversation_history: str,
    support_comment: str,
    solution: str,
) -> str:
    behaviour = PROGRESS_BEHAVIOUR.get(progress, PROGRESS_BEHAVIOUR["UNKNOWN"])
    return "\n".join(
        [
            f"Tikettisi: {title}",
            f"Kuvauksesi: {description}",
            f"Kategoria: {category}",
            f"Laite: {device}",
            f"Lisätiedot: {additional_info}",
            "",
            f"Oikea ratkaisu (vain sinun tiedoksesi): {solution}",
            f"Tukihenkilön edistyminen: {progress}",
            behaviour,
            "",
            "Keskusteluhistoria:",
            conversation_history,
            "",
            "Tukihenkilön uusi viesti:",
            support_comment,
            "",
            "Kirjoita seuraava vastauksesi tukihenkilölle.",
        ]
    )


def build_ticket_prompt(*, complexity: str, category: str, user_profile: str) -> str:
    return "\n".join(
        [
            "Luo realistinen IT-tuen harjoitustiketti suomeksi.",
            f"Vaativuus: {complexity}",
            f"Kategoria: {category}",
            f"Käyttäjäprofiili: {user_profile}",
            "",
            "Kirjoita kuvaus käyttäjän näkökulmasta ja hänen osaamistasoaan vastaavalla kielellä. "
            "Älä kerro ratkaisua tiketissä.",
        ]
    )


def build_solution_prompt(
    *, title: str, description: str, device: str, additional_info: str, category: str
) -> str:
    return "\n".join(
        [
            "Kirjoita tukihenkilöille tarkoitettu ratkaisuohje seuraavaan IT-tuen tikettiin suomeksi.",
            "",
            f"Otsikko: {title}",
            f"Kuvaus: {description}",
            f"Laite: {device}",
            f"Lisätiedot: {additional_info}",
            f"Kategoria: {category}",
            "",
            "Kuvaa ongelman todennäköinen syy ja numeroidut vaiheet, joilla ongelma ratkeaa.",
        ]
    )
