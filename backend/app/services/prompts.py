"""
Deterministic prompt builders for the AI tools.

Identical inputs always render identical prompts; nothing here calls out to
an external service.
"""
from typing import Dict, Tuple

from ..schemas.tools import (
    NOT_SPECIFIED,
    CarInput,
    CarPosition,
    LocationKey,
    PaletteKey,
    PromptSpec,
    TimeKey,
    VehicleSpec,
)


# ============================================================================
# Performance Estimator
# ============================================================================

PERFORMANCE_SYSTEM_PROMPT = """
You are a professional automotive engineer and performance analyst with access to comprehensive automotive databases and technical specifications. You MUST provide EXACT, PRECISE data - no approximations, estimates, or "about" values are acceptable.

CRITICAL REQUIREMENTS:
1. You MUST find the EXACT factory specifications including precise weight, horsepower, and 0-60 times
2. You MUST be aggressive and realistic about modification power gains - many builds produce significant power
3. You MUST justify every number with specific technical reasoning
4. You MUST provide precise weights to the exact pound, not ranges or approximations
5. NEVER underestimate power gains from well-planned modification lists

You MUST return your response as a single, valid JSON object. Do not include any text, code block formatting, or explanations outside of the JSON object itself.

Required JSON Output Schema:
{
  "stockPerformance": { "horsepower": number, "whp": number, "zeroToSixty": number },
  "estimatedPerformance": { "horsepower": number, "whp": number, "zeroToSixty": number },
  "explanation": "string (Detailed explanation covering your entire process, including exact specifications found, specific power gains per modification, and technical justification for all numbers)",
  "confidence": "'Low' | 'Medium' | 'High'"
}
""".strip()

PERFORMANCE_USER_TEMPLATE = """
MANDATORY ANALYSIS PROTOCOL - NO SHORTCUTS ALLOWED

**PHASE 1: EXACT FACTORY SPECIFICATION RESEARCH**
You MUST find and state the EXACT factory specifications for this SPECIFIC vehicle configuration:
- EXACT curb weight in pounds (not "approximately" or "around" - the precise manufacturer specification)
- EXACT factory CRANK horsepower and torque ratings (NOT wheel horsepower)
- EXACT factory 0-60 mph time from manufacturer or verified automotive publications
- EXACT engine displacement, configuration, and boost levels (if applicable)

CRITICAL: If user specifies a trim level, you MUST use that EXACT trim - do NOT substitute or assume different trims.
Research the specifications for the user-specified trim only.

**PHASE 2: AGGRESSIVE MODIFICATION POWER ANALYSIS**
For EACH modification listed, you MUST:
1. Calculate the specific horsepower gain for that modification on this engine platform
2. Research known power gains from dyno results and real-world examples
3. Account for synergistic effects when multiple mods work together
4. NEVER be conservative - if a modification is known to produce substantial gains, reflect that accurately
5. Consider supporting modifications (fuel, ignition, etc.) and their enabling effects

CRITICAL CALCULATION ORDER:
1. Start with stock horsepower
2. Add ALL hardware modifications first (intake, exhaust, turbo, internals, etc.)
3. Apply ECU tune percentage to the MODIFIED horsepower total (not stock)

MODIFICATION GAIN GUIDELINES (be aggressive but realistic):
- Cold air intake: 5-15hp baseline, more with tune
- Downpipe: 15-35hp on turbocharged engines
- Full exhaust systems: 10-25hp naturally aspirated, 15-40hp turbocharged
- Turbo upgrades: 50-150+ horsepower depending on size and supporting modifications
- Internal engine modifications: Calculate based on compression ratio, displacement, and flow improvements
- ECU tune: Apply 15-30% gain to the TOTAL after all other mods (turbocharged), 5-15% (naturally aspirated)

**PHASE 3: CORRECT CALCULATION METHODOLOGY**

1. **CRANK HORSEPOWER CALCULATION:**
   - Start with stock CRANK horsepower
   - Add modification gains to get new CRANK horsepower
   - Formula: Stock Crank HP + Total Modification Gains = New Crank HP

2. **WHEEL HORSEPOWER CALCULATION:**
   - Calculate wheel horsepower based on crank horsepower and drivetrain type

3. **POWER-TO-WEIGHT RATIO:**
   - Use CRANK horsepower (not wheel horsepower)
   - Formula: Vehicle Weight / Crank Horsepower = lbs/hp
   - Result should be 6-15 lbs/hp for most cars

4. **0-60 TIME CALCULATION - MANDATORY DETAILED ANALYSIS:**
   - Calculate EXACT power-to-weight ratio (Weight / Crank HP)
   - Use established power-to-weight formulas for baseline 0-60 estimate
   - Research and compare against 3+ real vehicles with similar power-to-weight ratios
   - Apply specific corrections for drivetrain type, transmission type, tire compound and launch control systems
   - The 0-60 time MUST change significantly based on power increases
   - Stock vs modified 0-60 times should show substantial improvement (typically 0.5-2.0+ seconds faster)

**PHASE 4: TECHNICAL VALIDATION**
Your explanation MUST include:
- The exact weight specification and where it comes from
- Confirmation that you used the EXACT trim specified by the user
- Step-by-step calculation showing: Stock HP + Hardware Mods + (Tune % x Modified HP) = Final Crank HP
- Calculation showing how wheel HP was derived from crank HP
- Power-to-weight calculation for stock and modified configurations
- Specific vehicle comparisons with similar ratios
- Detailed breakdown of each modification's power gain with technical justification

**TARGET VEHICLE SPECIFICATIONS:**
- Make: {make}
- Model: {model}
- Year: {year}
- Trim: {trim}
- Drivetrain: {drivetrain}
- Transmission: {transmission}
- Modifications: {modifications}
- Tire Type: {tire_type}
- Fuel Type: {fuel_type}
- Launch Technique: {launch_technique}

**MANDATORY ERROR CHECKS - VERIFY BEFORE RESPONDING:**
1. Power-to-weight ratio MUST be >1 (typically 6-15 lbs/hp for cars)
2. Wheel HP MUST be less than Crank HP (due to drivetrain loss)
3. You MUST use the exact trim specified by user - DO NOT SUBSTITUTE
4. Show your math: Stock HP + Mod gains = Total Crank HP
5. 0-60 times MUST be different between stock and modified versions when modifications are listed
6. Modified 0-60 time MUST NOT be slower than stock 0-60 time
7. Significant power increases (50+ hp) should result in 0.5+ second improvements in 0-60

CRITICAL: DO NOT use any example numbers in your calculations. Use only the actual specifications and modifications for this specific vehicle.
""".strip()

# Replacement instructions for fields the user left as "Not Specified"
UNSPECIFIED_GUIDANCE: Dict[str, str] = {
    "drivetrain": "Research factory drivetrain options",
    "transmission": "Research available transmissions",
    "tire_type": "Assume performance tires",
    "fuel_type": "Assume premium fuel if turbocharged",
    "launch_technique": "Assume optimal launch",
}
MISSING_TRIM_GUIDANCE = "Research most common/performance trim"
NO_MODIFICATIONS = "None (stock vehicle)"


def _specified(value: str, field: str) -> str:
    if not value or value == NOT_SPECIFIED:
        return UNSPECIFIED_GUIDANCE[field]
    return value


def build_performance_prompts(car: CarInput) -> Tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for a performance estimate."""
    user_prompt = PERFORMANCE_USER_TEMPLATE.format(
        make=car.make,
        model=car.model,
        year=car.year,
        trim=car.trim or MISSING_TRIM_GUIDANCE,
        drivetrain=_specified(car.drivetrain, "drivetrain"),
        transmission=_specified(car.transmission, "transmission"),
        modifications=car.modifications or NO_MODIFICATIONS,
        tire_type=_specified(car.tire_type, "tire_type"),
        fuel_type=_specified(car.fuel_type, "fuel_type"),
        launch_technique=_specified(car.launch_technique, "launch_technique"),
    )
    return PERFORMANCE_SYSTEM_PROMPT, user_prompt


_FIGURES_SCHEMA = {
    "type": "object",
    "required": ["horsepower", "whp", "zeroToSixty"],
    "properties": {
        "horsepower": {"type": "number"},
        "whp": {"type": "number"},
        "zeroToSixty": {"type": "number"},
    },
    "additionalProperties": False,
}

# Strict structured-output schema for the chat completions call
PERFORMANCE_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "perf_schema",
        "strict": True,
        "schema": {
            "type": "object",
            "required": ["stockPerformance", "estimatedPerformance", "explanation", "confidence"],
            "properties": {
                "stockPerformance": _FIGURES_SCHEMA,
                "estimatedPerformance": _FIGURES_SCHEMA,
                "explanation": {"type": "string"},
                "confidence": {"type": "string", "enum": ["Low", "Medium", "High"]},
            },
            "additionalProperties": False,
        },
    },
}


# ============================================================================
# Build Planner
# ============================================================================

BUILD_PLAN_TEMPLATE = """
You are a professional automotive tuning consultant with extensive knowledge of modification costs, installation complexity, and performance gains. You must provide a comprehensive build plan with accurate cost estimates.

CRITICAL REQUIREMENTS:
1. All prices must be realistic current market prices
2. Include both parts cost AND labor cost estimates
3. Provide two labor cost tiers: DIY/Small Shop rates and Professional Shop rates
4. Account for regional variations but use average US pricing
5. Be specific about actual parts, not generic categories

Vehicle: {vehicle}
Customer Request: {question}

RESPONSE FORMAT - Return valid JSON only:
{{
  "stage": "Descriptive build type based on customer request (e.g., 'Budget Build', 'Stage 1 Performance', 'Track Prep')",
  "totalPartsCost": number,
  "totalDIYCost": number,
  "totalProfessionalCost": number,
  "recommendations": [
    {{
      "name": "Specific part/modification name",
      "partPrice": number,
      "diyShopCost": number,
      "professionalShopCost": number,
      "description": "What this does and why it's recommended"
    }}
  ],
  "explanation": "Detailed strategy explanation covering why these mods are chosen, installation order, expected gains, and how they work together",
  "timeframe": "Realistic timeframe (e.g., '2-4 weeks', '1-2 months')",
  "difficulty": "Beginner|Intermediate|Advanced|Professional",
  "warnings": ["Important considerations", "Potential issues", "Prerequisites"]
}}

PRICING GUIDELINES:
- DIY Shop: $80-120/hour labor rates, basic facilities
- Professional Shop: $150-200/hour labor rates, specialized tools/expertise
- Research actual part prices from major suppliers (APR, Cobb, Injen, etc.)
- Include supporting modifications needed (gaskets, fluids, misc hardware)

ANALYSIS APPROACH:
- Parse customer request for budget, goals, and experience level
- Recommend appropriate modifications based on their specific needs
- Consider budget constraints and prioritize modifications
- Factor in vehicle platform capabilities and common issues
- Suggest realistic timelines and difficulty levels

Analyze this specific vehicle platform and customer request to provide realistic, actionable recommendations.
""".strip()

DEFAULT_BUILD_QUESTION = "Suggest a well-rounded first stage of modifications."


def build_plan_prompt(spec: VehicleSpec) -> str:
    vehicle = " ".join(part for part in (spec.year, spec.make, spec.model, spec.trim) if part)
    return BUILD_PLAN_TEMPLATE.format(
        vehicle=vehicle,
        question=spec.question or DEFAULT_BUILD_QUESTION,
    )


# ============================================================================
# Image Generator
# ============================================================================

POSITION_PROMPTS: Dict[CarPosition, str] = {
    CarPosition.FRONT: "straight-on front view, directly facing the front grille and headlights",
    CarPosition.QUARTER: (
        "front quarter angle, positioned at the front corner near the headlight "
        "with visibility down the side and across the front"
    ),
    CarPosition.THREE_QUARTER: (
        "rear three-quarter angle, positioned at the rear corner near the taillight "
        "looking down the side and across the rear"
    ),
    CarPosition.BACK: "straight-on rear view, directly facing the back of the car showing taillights and rear details",
}
DEFAULT_POSITION_PROMPT = "front three-quarter view"

LOCATION_PROMPTS: Dict[LocationKey, str] = {
    LocationKey.SCOTTISH_HILLS: (
        ", set against rolling green Scottish highlands with ancient stone castles visible in the misty distance"
    ),
    LocationKey.US_CANYONS: (
        ", positioned in dramatic American canyon landscape with red rock formations and desert terrain"
    ),
    LocationKey.ITALIAN_COBBLESTONE: (
        ", parked on historic Italian cobblestone streets with Renaissance architecture "
        "and warm Mediterranean lighting"
    ),
    LocationKey.JAPANESE_NIGHTLIFE: (
        ", on a neon-lit Japanese city street with modern skyscrapers and vibrant urban nightlife in the background"
    ),
    LocationKey.GERMAN_CITY: (
        ", in a clean modern German city setting with efficient architecture and contemporary urban design"
    ),
}

TIME_PROMPTS: Dict[TimeKey, str] = {
    TimeKey.DUSK: ", during golden hour with warm sunset lighting casting long shadows",
    TimeKey.DAWN: ", at dawn with soft pastel morning light and gentle atmospheric glow",
    TimeKey.MIDNIGHT: ", at midnight with dramatic artificial lighting and moody nighttime atmosphere",
    TimeKey.MIDDAY: ", in bright midday sunlight with clear shadows and vibrant colors",
}

PALETTE_PROMPTS: Dict[PaletteKey, str] = {
    PaletteKey.COOL_TEAL: ", with a cool color palette dominated by teals, blues, and cyan tones",
    PaletteKey.WARM_SUNSET: ", with warm sunset colors featuring oranges, reds, and golden tones",
    PaletteKey.MONOCHROME_SLATE: ", in monochrome with black, white, and subtle gray tones",
    PaletteKey.NEO_TOKYO: ", with cyberpunk neon colors including electric blues, pinks, and purple highlights",
    PaletteKey.VINTAGE_FILM: ", with vintage film color grading and nostalgic retro tones",
}

MODEL_DESCRIPTIONS: Dict[LocationKey, str] = {
    LocationKey.SCOTTISH_HILLS: "a fashionable Scottish woman in modern casual wear, natural hair blowing in the wind",
    LocationKey.US_CANYONS: "an athletic American woman in denim and boots leaning casually on the car",
    LocationKey.ITALIAN_COBBLESTONE: "a stylish Italian woman in chic streetwear walking past the car",
    LocationKey.JAPANESE_NIGHTLIFE: (
        "a trendy Japanese woman in neon-accented fashion, street style, standing near the car"
    ),
    LocationKey.GERMAN_CITY: "a modern German woman in sleek minimalist clothing, confident pose beside the car",
}

DEBADGE_PROMPT = (
    ", with all model badges, trim badges, and emblems removed except for the main "
    "manufacturer logo (debadged look)"
)
CHROME_DELETE_PROMPT = ", with all chrome trim replaced with black or body-colored accents (chrome delete)"
NO_PLATE_PROMPT = ", with no license plate visible on the vehicle"

DEFAULT_CAMERA_ANGLE = "three-quarter front"
STATIC_MOTION = "static"
PHOTOREALISM_THRESHOLD = 80
FILM_GRAIN_THRESHOLD = 20

QUALITY_PROMPT = (
    "Render in ultra-high quality, crisp and detailed, realistic lighting and reflections, "
    "accurate car body proportions, well-defined wheels and tires, cinematic depth of field, "
    "sharp focus on the car, natural environment integration, and a coherent, professional photography look."
)

NEGATIVE_PROMPT = (
    "nudity, inappropriate content, nsfw, explicit, offensive, low quality, blurry, distorted, ugly, "
    "text overlays, watermarks, logos, extra limbs, distorted wheels, unrealistic proportions, floating objects, "
    "blurred edges, double exposures, overexposed highlights, oversaturated neon unless explicitly asked, "
    "cartoonish or plastic look, glitchy reflections, extra fingers or malformed hands, uncanny valley faces. "
    "Render tires fully round and properly seated, paint and reflections physically plausible, "
    "no artifacts or half-rendered backgrounds."
)


def render_image_prompt(spec: PromptSpec) -> str:
    """Render the text prompt for an image request."""
    car, scene, camera, style = spec.car, spec.scene, spec.camera, spec.style

    prompt = (
        f"A {car.year} {car.make} {car.model} in {car.color.lower()} color "
        f"with {car.wheels_color.lower()} wheels"
    )
    position = POSITION_PROMPTS.get(car.position, DEFAULT_POSITION_PROMPT)
    prompt += f", photographed from {position}"

    if scene.location_key:
        prompt += LOCATION_PROMPTS[scene.location_key]
    if scene.time_key:
        prompt += TIME_PROMPTS[scene.time_key]
    if scene.palette_key:
        prompt += PALETTE_PROMPTS[scene.palette_key]

    if car.de_badged:
        prompt += DEBADGE_PROMPT
    if car.chrome_delete:
        prompt += CHROME_DELETE_PROMPT

    if car.add_model and scene.location_key:
        prompt += f", with {MODEL_DESCRIPTIONS[scene.location_key]}"

    if car.details:
        prompt += f", {car.details.strip()}"

    if camera:
        prompt += f", shot with {camera.focal_length}mm focal length"
        if camera.angle != DEFAULT_CAMERA_ANGLE:
            prompt += f" from {camera.angle} angle"
        if camera.motion != STATIC_MOTION:
            prompt += f" with {camera.motion} motion"

    if style:
        if style.realism < PHOTOREALISM_THRESHOLD:
            prompt += ", with artistic stylized rendering"
        else:
            prompt += ", with photorealistic rendering"
        if style.grain > FILM_GRAIN_THRESHOLD:
            prompt += ", with visible film grain texture"

    prompt += NO_PLATE_PROMPT
    prompt += f", {QUALITY_PROMPT}"
    return prompt


def image_request_payload(prompt: str, width: int, height: int, seed=None) -> Dict:
    """Structured request sent to the image model alongside the rendered prompt."""
    return {
        "prompt": prompt,
        "negative_prompt": NEGATIVE_PROMPT,
        "width": width,
        "height": height,
        "seed": seed,
        "style": "photorealistic automotive photography",
        "quality": "ultra-high",
        "format": "PNG",
    }
