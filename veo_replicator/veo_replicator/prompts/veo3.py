"""
Veo3 Replicator prompt templates.

Instructions sent to Gemini for style extraction, batched image/motion prompt
generation and batched voiceover generation. Every template asks for strict
JSON; the gateway still tolerates Markdown fences around it.
"""

STYLE_TOKEN_MARKER = "[Global Style Token PRO+]"

STYLE_EXTRACTION_PROMPT = """You are a cinematic visual analyst reverse-engineering videos so they can be recreated with Google Veo3.

Study these sample frames and extract the GLOBAL STYLE TOKEN PRO+ together with the 14-factor visual fidelity rules.

## 1. Art & Rendering Identity
- Art Style (e.g. "Cinematic Industrial Documentary", "Stylized anime", "Photorealistic")
- Render Quality (e.g. "4K hyper-realistic", "8K HDR", "35mm film grain")

## 2. Line Identity
- Line Weight (sharp / soft / varied)
- Line Style (clean vector, sketch, photographic)

## 3. Color Identity
- Dominant Color Palette (5-7 HEX codes)
- Color Harmony (analogous, complementary, triadic, ...)

## 4. Shading Identity
- Shading Style (cel-shaded, soft volumetric, hard edge)
- Contrast Level (high / medium / low)

## 5. Camera Identity
- Camera Style (handheld, gimbal stabilized, tripod, drone)
- Lens Character (wide angle, telephoto, anamorphic, ...)

## 6. Motion Physics Identity
- Motion Style (smooth, jerky, slow-motion, time-lapse)
- Physics Realism (realistic, exaggerated, stylized)

## 7. Background Identity
- Background Style (detailed, minimalist, bokeh)
- Depth Treatment (deep focus, shallow DOF, layered)

## 8. Text-Overlay Grammar (only if text is visible)
- Text Style (font type, placement)
- Text Animation behaviour

## 9. The 14 Deep Fidelity Elements
1. Character Anatomy Constraints
2. Facial Construction Rules
3. Material Surface Behavior
4. Lighting Temperature Logic
5. Shadow Behavior
6. Highlight Behavior
7. Geometry Simplification Level
8. Perspective Rules
9. Background Density Rules
10. Object Interaction Physics
11. Transition Language
12. Timing Rhythm
13. Secondary Motion
14. Continuity Rules

Return STRICT JSON (no commentary):
{
  "artStyle": "string",
  "renderQuality": "string",
  "lineWeight": "string",
  "lineStyle": "string",
  "colorPalette": ["#hex1", "#hex2"],
  "colorHarmony": "string",
  "shadingStyle": "string",
  "contrastLevel": "string",
  "cameraStyle": "string",
  "lensCharacter": "string",
  "motionStyle": "string",
  "physicsRealism": "string",
  "backgroundStyle": "string",
  "depthTreatment": "string",
  "textStyle": "string or null",
  "textAnimation": "string or null",
  "tokenString": "one-line style token used as a prompt suffix",
  "fidelityElements": [
    {"factor": "Character Anatomy", "description": "...", "value": "..."}
  ]
}
fidelityElements must contain all 14 elements."""

IMAGE_PROMPT_SYSTEM = f"""You are Veo3 Replicator Elite, writing IMAGE PROMPTS for static keyframe references.

Turn this video frame into ONE continuous paragraph that recreates the exact still with 99-100% fidelity.

RULES:
1. One paragraph. No bullets, no labels.
2. Describe a perfect still frame with zero motion.
3. Capture the exact pose, silhouette, anatomy and proportions.
4. Match the exact camera angle, composition and framing.
5. Reproduce the exact palette, line weight and shading.
6. Include background behaviour, props and facial expression.
7. Place any OCR text exactly where it appears.
8. English only (OCR text stays verbatim).
9. End with: {STYLE_TOKEN_MARKER}

Answer these five questions inside the paragraph:
SUBJECT (who/what, clothing, pose), ENVIRONMENT (setting, props),
LIGHTING (temperature, atmosphere), CAMERA (angle, distance, lens),
TEXTURE (materials, surface detail)."""

VIDEO_PROMPT_SYSTEM = f"""You are Veo3 Replicator Elite, writing VIDEO PROMPTS for 8-second motion shots.

Turn this scene into ONE continuous paragraph that describes ONLY the motion.

RULES:
1. One paragraph describing motion only.
2. Do not redesign or alter anything static from the IMAGE PROMPT.
3. Cover motion physics: arcs, trajectories, ease-in/ease-out.
4. Cover anticipation, follow-through, squash and stretch where relevant.
5. Describe character, prop and camera movement.
6. Cover transition language, timing rhythm and secondary motion.
7. Describe how any on-screen text animates (fade/slide/scale/bounce).
8. English only.
9. End with: {STYLE_TOKEN_MARKER}"""

VOICEOVER_SYSTEM = """You are Veo3 Replicator Elite, writing 8-second VOICEOVER scripts.

RULES:
1. Exactly 8 seconds of spoken audio (about 20-30 words).
2. Match the visual tone and mood.
3. Keep continuity with the previous scene's script when one is given.
4. Natural language; complement the visuals with context or story instead of describing them.
5. Write in the requested language.

Tone is one of: narrative, dramatic, informative, conversational."""


def build_batch_prompt(batch_index: int, scenes_in_batch: int, style_token: str) -> str:
    """Instruction for one batch of paired image/motion prompts."""
    return f"""Generate {scenes_in_batch} scene prompts for this video segment.

BATCH: {batch_index + 1}
GLOBAL STYLE TOKEN: "{style_token}"

For EACH frame provided, in the order given, create:
1. IMAGE PROMPT (PRO MAX) - static keyframe description
2. VIDEO PROMPT (PRO MAX) - motion description

Return a STRICT JSON array with exactly {scenes_in_batch} elements:
[
  {{
    "sceneIndex": 0,
    "timeRange": "MM:SS-MM:SS",
    "shotType": "Shot type name",
    "imagePrompt": "Full paragraph... {STYLE_TOKEN_MARKER}",
    "videoPrompt": "Full motion paragraph... {STYLE_TOKEN_MARKER}",
    "ocrText": [
      {{
        "text": "detected on-screen text",
        "position": {{"x": 0, "y": 0, "width": 0, "height": 0}},
        "style": {{"fontStyle": "sans-serif", "fontSize": "medium", "color": "#ffffff"}}
      }}
    ]
  }}
]

REMEMBER:
- IMAGE PROMPT = static, perfect still frame, zero motion
- VIDEO PROMPT = motion only, no visual redesign
- Both end with: {STYLE_TOKEN_MARKER}
- English only (except OCR text)"""


def build_voiceover_batch_prompt(scene_count: int, language_name: str, language_code: str) -> str:
    """Instruction for one batch of narration scripts."""
    return f"""Generate {scene_count} voiceover scripts in {language_name} ({language_code}).

For EACH scene frame provided, in the order given, write an 8-second narration script.

RULES:
1. Each script is about 20-30 words.
2. Keep the narrative flowing from scene to scene.
3. Complement the visuals, do not describe them.
4. Match the visual mood and tone.
5. Language: {language_name}

Return a STRICT JSON array with exactly {scene_count} elements:
[
  {{
    "sceneIndex": 0,
    "script": "8-second narration in {language_name}",
    "wordCount": 24,
    "estimatedDuration": 8,
    "tone": "narrative|dramatic|informative|conversational"
  }}
]"""


def build_single_image_prompt(style_token: str) -> str:
    return f"""{IMAGE_PROMPT_SYSTEM}

GLOBAL STYLE TOKEN: "{style_token}"

Analyze this frame and write the IMAGE PROMPT (one paragraph).
Output ONLY the prompt text, ending with {STYLE_TOKEN_MARKER}."""


def build_single_video_prompt(style_token: str, image_prompt: str) -> str:
    return f"""{VIDEO_PROMPT_SYSTEM}

GLOBAL STYLE TOKEN: "{style_token}"

The IMAGE PROMPT for this scene is:
"{image_prompt}"

Now write the VIDEO PROMPT describing ONLY the motion (one paragraph).
Output ONLY the prompt text, ending with {STYLE_TOKEN_MARKER}."""


def build_single_voiceover_prompt(language_name: str, previous_script: str = "") -> str:
    prompt = f"""Write an 8-second voiceover script in {language_name} for this video frame.

RULES:
- About 20-30 words
- 8 seconds when spoken
- Match the visual mood
- Do not describe what is visible; give context or story"""
    if previous_script:
        prompt += f"""

Previous scene script (keep continuity):
"{previous_script}\""""
    prompt += f"""

Return STRICT JSON:
{{
  "script": "8-second script in {language_name}",
  "wordCount": 24,
  "tone": "narrative|dramatic|informative|conversational"
}}"""
    return prompt
