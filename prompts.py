"""
Prompt templates for the LLM calls

Placeholders are filled with str.replace so JSON braces in the templates
need no escaping.
"""

TEXT_EXTRACTION_INSTRUCTIONS = "Extract structured data from the adoption listing"

TEXT_EXTRACTION = """You are reading an adoption listing from a Polish animal shelter.
Shelter: {{SHELTER_NAME}} ({{SHELTER_CITY}})

Extract the facts the listing states or clearly implies. Use null when the
listing says nothing about a field. Do not guess health facts.

Rules:
- breedEstimates: pick breeds ONLY from this list: {{BREED_LIST}}
  Use "mieszaniec" for mixed breeds and "nieznana" when nothing is said.
- ageEstimate.months is the best guess in months, rangeMin/rangeMax bound it.
- sizeEstimate.value is one of small, medium, large.
- personalityTags: short lowercase Polish adjectives (e.g. "przyjazny", "energiczny").
- locationHints.isFoster is true when the dog lives in a foster home (dom tymczasowy).
- urgent is true only when the listing says adoption is urgent or the dog is in danger.

Listing:
{{RAW_DESCRIPTION}}
"""

PHOTO_ANALYSIS = """You are looking at photos of one dog from a Polish animal shelter.
Shelter: {{SHELTER_NAME}} ({{SHELTER_CITY}})

Describe only what is visible. Use null when a feature cannot be seen.

Rules:
- breedEstimates: pick breeds ONLY from this list: {{BREED_LIST}}
  Most shelter dogs are mixed, prefer "mieszaniec" unless the breed is obvious.
- sizeEstimate.value is one of small, medium, large.
- ageCategory is one of puppy, young, adult, senior.
- colorPrimary / colorSecondary are plain color names in English.
"""

DESCRIPTION_SYSTEM = "Generate a warm, engaging dog bio in Polish. Return valid JSON only."

DESCRIPTION_GEN = """Write a short adoption bio (3-5 sentences, Polish) for this dog.

Use only the facts below, never invent health or behaviour details.
Pick the tone: "urgent" when the dog needs a home quickly, "gentle" for
seniors or shy dogs, otherwise "hopeful".

Dog:
{{DOG_DATA}}
"""
