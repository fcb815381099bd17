"""All magic values live here — no inline literals anywhere else."""

# Wall-clock budget for one scan request (seconds).
TOTAL_BUDGET_SECONDS: float = 28.0
# Per network call ceiling, independent of the poll ceiling.
CALL_TIMEOUT_SECONDS: float = 6.0
# Narrative generation is a single slower call.
NARRATIVE_CALL_TIMEOUT_SECONDS: float = 15.0

# Stage safety thresholds (seconds of remaining budget).
# RESERVED_TAIL is kept back from every remote stage for extraction,
# assembly and response serialization.
RESERVED_TAIL_SECONDS: float = 1.5
SUBMIT_MIN_BUDGET_SECONDS: float = 6.0
POLL_MIN_CEILING_SECONDS: float = 2.0
NARRATIVE_MIN_BUDGET_SECONDS: float = 5.0
# Smallest slot worth starting another status query in.
MIN_CALL_SLOT_SECONDS: float = 0.25

# Poll backoff: 1.2s, ×1.6 per attempt, capped at 8s.
BACKOFF_INITIAL_SECONDS: float = 1.2
BACKOFF_FACTOR: float = 1.6
BACKOFF_CAP_SECONDS: float = 8.0

# Tone bands (score ≥ STABLE → stable, ≥ DEVIATION → deviation, else threshold).
TONE_STABLE_MIN: int = 88
TONE_DEVIATION_MIN: int = 72
TONE_STABLE = "stable"
TONE_DEVIATION = "deviation"
TONE_THRESHOLD = "threshold"

# Input limits
MAX_IMAGES = 3
FINGERPRINT_LENGTH = 16
IMAGE_FIELDS = ("image1", "image2", "image3")
DEFAULT_CONTENT_TYPE = "image/jpeg"

# Precheck heuristics
PRECHECK_MIN_KB: float = 60.0
PRECHECK_SAMPLE_STRIDE = 401
PRECHECK_DEFAULT_SIGNAL: float = 120.0
PRECHECK_DARK_BELOW: float = 85.0
PRECHECK_BRIGHT_ABOVE: float = 185.0
WARN_LOW_RESOLUTION = "LOW_RESOLUTION"
WARN_TOO_DARK = "TOO_DARK"
WARN_TOO_BRIGHT = "TOO_BRIGHT"
TIP_LOW_RESOLUTION = "Image looks compressed. Use a clearer photo (avoid screenshots)."
TIP_TOO_DARK = "Lighting is low. Face a window or brighter light."
TIP_TOO_BRIGHT = "Highlights are strong. Avoid direct overhead light."
TIP_WHITE_BALANCE = "Keep white balance neutral. Avoid warm indoor bulbs when possible."

# YouCam skin analysis
YOUCAM_BASE_URL = "https://yce-api-01.makeupar.com/s2s/v2.0"
YOUCAM_FILE_PATH = "/file/skin-analysis"
YOUCAM_TASK_PATH = "/task/skin-analysis"
YOUCAM_DEFAULT_FILENAME = "scan.jpg"
YOUCAM_HD_ACTIONS = (
    "hd_texture", "hd_pore", "hd_wrinkle", "hd_redness", "hd_oiliness",
    "hd_age_spot", "hd_radiance", "hd_moisture", "hd_firmness",
)
YOUCAM_MINISERVER_ARGS = {
    "enable_mask_overlay": False,
    "enable_dark_background_hd_pore": True,
    "color_dark_background_hd_pore": "3D3D3D",
    "opacity_dark_background_hd_pore": 0.4,
}

# Vendor photo rejections that ask the user to retake instead of failing.
RETAKE_TIPS = {
    "error_src_face_too_small": (
        "Move closer: the face should fill 60–80% of the frame.",
        "Center the face and look straight at the camera.",
        "Keep the forehead visible and avoid glasses.",
    ),
    "error_lighting_dark": (
        "Lighting too dark: face a window or a soft light source.",
        "Keep the face evenly lit, avoid backlight.",
    ),
    "error_src_face_out_of_bound": (
        "Face out of frame: move back to the center.",
        "Hold the head still while capturing.",
    ),
}

# Missing vendor channels are substituted with this neutral ui score.
MISSING_CHANNEL_SCORE = 50

# Report signals, in response order.
SIGNAL_TITLES = {
    "texture": "TEXTURE MATRIX",
    "pore": "PORE ARCHITECTURE",
    "pigmentation": "CHROMA MAPPING",
    "wrinkle": "CREASE INDEX",
    "hydration": "RETENTION EFFICIENCY",
    "sebum": "SEBUM STABILITY",
    "skintone": "TONE COHERENCE",
    "sensitivity": "REACTIVITY THRESHOLD",
    "clarity": "SURFACE CLARITY",
    "elasticity": "ELASTIC RESPONSE",
    "redness": "VASCULAR INTENSITY",
    "brightness": "LUMINANCE STATE",
    "firmness": "STRUCTURAL SUPPORT",
    "pores_depth": "PORE DEPTH PROXY",
}
SIGNAL_IDS = tuple(SIGNAL_TITLES)

SIGNAL_TITLES_ZH = {
    "texture": "紋理結構矩陣",
    "pore": "毛孔結構指數",
    "pigmentation": "色素聚集映射",
    "wrinkle": "細紋動能指數",
    "hydration": "含水留置效率",
    "sebum": "油脂分散穩定度",
    "skintone": "膚色一致性",
    "sensitivity": "刺激門檻監測",
    "clarity": "表層清晰度",
    "elasticity": "彈性回彈指數",
    "redness": "微血管強度",
    "brightness": "亮度狀態",
    "firmness": "緊緻支撐指數",
    "pores_depth": "毛孔深度代理",
}

# Display priority: texture and hydration lead, the rest step down by 2 from 88.
SIGNAL_PRIORITY = {
    "texture": 95,
    "hydration": 92,
    "pore": 88,
    "pigmentation": 86,
    "wrinkle": 84,
    "sebum": 82,
    "skintone": 80,
    "sensitivity": 78,
    "clarity": 76,
    "elasticity": 74,
    "redness": 72,
    "brightness": 70,
    "firmness": 68,
    "pores_depth": 66,
}

# Three sub-metric details per signal: (label_en, label_zh, recipe).
# Numeric recipe: (source signal, factor, inverted, jitter amplitude).
#   value = source*factor, or 100 - source*factor when inverted, jittered by seed.
# Banded recipe: (source signal, ((above, label), ...), fallback label).
SIGNAL_DETAILS = {
    "texture": (
        ("Roughness", "粗糙度", ("texture", 0.85, True, 2)),
        ("Smoothness", "平滑度", ("texture", 0.90, False, 2)),
        ("Evenness", "均勻度", ("texture", 0.88, False, 3)),
    ),
    "pore": (
        ("T-Zone", "T 區", ("pore", 0.85, False, 3)),
        ("Cheek", "臉頰", ("pore", 1.05, False, 2)),
        ("Chin", "下巴", ("pore", 0.95, False, 3)),
    ),
    "pigmentation": (
        ("Spot Density", "聚集密度", ("pigmentation", 0.92, False, 2)),
        ("Red Channel", "紅通道", ("redness", 0.90, False, 2)),
        ("Dullness", "暗沉度", ("brightness", 0.75, True, 3)),
    ),
    "wrinkle": (
        ("Eye Zone", "眼周", ("wrinkle", 0.82, True, 3)),
        ("Forehead", "額頭", ("wrinkle", 0.92, False, 3)),
        ("Nasolabial", "法令", ("wrinkle", 0.78, True, 4)),
    ),
    "hydration": (
        ("Surface", "表層", ("hydration", 0.74, False, 3)),
        ("Deep", "深層", ("hydration", 0.84, False, 2)),
        ("TEWL Proxy", "流失代理", ("hydration", ((70, "Low"), (50, "Moderate")), "Elevated")),
    ),
    "sebum": (
        ("T-Zone", "T 區", ("sebum", 0.70, True, 4)),
        ("Cheek", "臉頰", ("sebum", 0.85, False, 3)),
        ("Chin", "下巴", ("sebum", 0.75, True, 3)),
    ),
    "skintone": (
        ("Evenness", "均勻度", ("skintone", 0.92, False, 2)),
        ("Brightness", "亮度", ("brightness", 0.90, False, 2)),
        ("Red Drift", "紅偏移", ("redness", 0.82, True, 3)),
    ),
    "sensitivity": (
        ("Redness Index", "泛紅指數", ("redness", 0.78, True, 3)),
        ("Barrier Stability", "屏障穩定", ("hydration", 0.86, False, 2)),
        ("Response", "反應傾向", ("sensitivity", ((70, "Low"), (50, "Medium")), "Elevated")),
    ),
    "clarity": (
        ("Micro-reflection", "微反射", ("clarity", ((70, "Even"), (50, "Uneven")), "Scattered")),
        ("Contrast Zones", "對比區", ("pigmentation", ((60, "Present"),), "Minimal")),
        ("Stability", "穩定度", ("texture", ((65, "High"), (45, "Medium")), "Low")),
    ),
    "elasticity": (
        ("Rebound", "回彈", ("elasticity", ((70, "Stable"), (50, "Moderate")), "Reduced")),
        ("Support", "支撐", ("firmness", ((65, "Strong"), (45, "Moderate")), "Weak")),
        ("Variance", "變異", ("elasticity", ((60, "Low"),), "Medium")),
    ),
    "redness": (
        ("Hotspots", "集中區", ("redness", ((69, "Minimal"), (54, "Scattered")), "Localized")),
        ("Threshold", "門檻", ("redness", ((64, "High"), (49, "Moderate")), "Near")),
        ("Stability", "穩定度", ("redness", ((65, "High"), (45, "Medium")), "Low")),
    ),
    "brightness": (
        ("Global", "整體", ("brightness", ((70, "Stable"), (50, "Moderate")), "Low")),
        ("Shadow Zones", "陰影區", ("brightness", ((65, "Minimal"),), "Minor deviation")),
        ("Trajectory", "軌跡", ("brightness", ((60, "Improving"),), "Baseline")),
    ),
    "firmness": (
        ("Support", "支撐", ("firmness", ((65, "Present"), (45, "Moderate")), "Reduced")),
        ("Baseline", "基準", ("firmness", ((60, "Stable"), (40, "Moderate")), "Low")),
        ("Variance", "變異", ("firmness", ((55, "Low"),), "Medium")),
    ),
    "pores_depth": (
        ("Depth Proxy", "深度代理", ("pores_depth", ((70, "Shallow"), (50, "Derived")), "Pronounced")),
        ("Edge Definition", "邊界清晰", ("pore", ((70, "Good"), (50, "Fair")), "Diffuse")),
        ("Stability", "穩定度", ("pore", ((65, "High"), (45, "Medium")), "Variable")),
    ),
}

# Per-area vendor readings that replace a numeric detail when present.
DETAIL_AREA_CHANNELS = {
    ("pore", "T-Zone"): "hd_pore.forehead",
    ("pore", "Cheek"): "hd_pore.cheek",
    ("wrinkle", "Eye Zone"): "hd_wrinkle.crowfeet",
    ("wrinkle", "Forehead"): "hd_wrinkle.forehead",
    ("wrinkle", "Nasolabial"): "hd_wrinkle.nasolabial",
}

# Vendor channel aliases: signal formula input → YouCam action names, first hit wins.
CHANNEL_KEYS = {
    "texture": ("hd_texture", "hd_texture.whole", "texture"),
    "pore": ("hd_pore.whole", "hd_pore", "pore"),
    "wrinkle": ("hd_wrinkle.whole", "hd_wrinkle", "wrinkle"),
    "redness": ("hd_redness", "hd_redness.whole", "redness"),
    "oiliness": ("hd_oiliness", "hd_oiliness.whole", "oiliness"),
    "age_spot": ("hd_age_spot", "hd_age_spot.whole", "age_spot"),
    "radiance": ("hd_radiance", "hd_radiance.whole", "radiance"),
    "moisture": ("hd_moisture", "hd_moisture.whole", "moisture"),
    "firmness": ("hd_firmness", "hd_firmness.whole", "firmness"),
}

# Signal formulas: (channel, weight, inverted). Inverted terms use 100 - ui.
SIGNAL_FORMULAS = {
    "texture": (("texture", 1.0, False),),
    "pore": (("pore", 1.0, False),),
    "pigmentation": (("age_spot", 0.92, False),),
    "wrinkle": (("wrinkle", 1.0, False),),
    "hydration": (("moisture", 0.94, False),),
    "sebum": (("oiliness", 0.92, False),),
    "skintone": (("radiance", 0.6, False), ("age_spot", 0.25, True), ("redness", 0.15, True)),
    # composed barrier signal
    "sensitivity": (("redness", 0.45, True), ("moisture", 0.35, False), ("oiliness", 0.20, True)),
    "clarity": (("radiance", 0.55, False), ("age_spot", 0.25, True), ("texture", 0.20, False)),
    "elasticity": (("firmness", 0.92, False),),
    "redness": (("redness", 0.92, False),),
    "brightness": (("radiance", 0.92, False),),
    "firmness": (("firmness", 0.96, False),),
    "pores_depth": (("pore", 0.90, False),),
}

# Report dimensions: member signal → weight (weights sum to 1).
DIMENSION_TITLES = {
    "surface": "SURFACE INTEGRITY",
    "barrier": "BARRIER & RETENTION",
    "tone": "TONE & LUMINANCE",
    "structure": "STRUCTURAL SUPPORT",
    "reactivity": "REACTIVITY",
    "pore": "PORE PROFILE",
}
DIMENSION_WEIGHTS = {
    "surface": {"texture": 0.5, "clarity": 0.25, "pore": 0.25},
    "barrier": {"hydration": 0.5, "sensitivity": 0.3, "sebum": 0.2},
    "tone": {"skintone": 0.4, "pigmentation": 0.3, "brightness": 0.3},
    "structure": {"elasticity": 0.35, "firmness": 0.35, "wrinkle": 0.3},
    "reactivity": {"redness": 0.6, "sensitivity": 0.4},
    "pore": {"pore": 0.5, "pores_depth": 0.3, "sebum": 0.2},
}
DIMENSION_IDS = tuple(DIMENSION_TITLES)

# Fallback synthesizer bounds
SYNTH_SCORE_LOW = 58
SYNTH_SCORE_HIGH = 86
FNV_OFFSET = 2166136261
FNV_PRIME = 16777619

# Seeded confidence: base + r*span, +boost for pronounced scores.
CONFIDENCE_BASE = 0.74
CONFIDENCE_SPAN = 0.18
CONFIDENCE_BOOST = 0.04
CONFIDENCE_BOOST_ABOVE = 75
CONFIDENCE_BOOST_BELOW = 35

# Narrative generation
OPENAI_NARRATIVE_MODEL = "gpt-4o-2024-08-06"
CLAUDE_NARRATIVE_MODEL = "claude-sonnet-4-5-20250929"
NARRATIVE_MAX_TOKENS = 4096
NARRATIVE_TEMPERATURE = 0.6
NARRATIVE_SCHEMA_NAME = "skin_scan_report"
NARRATIVE_SYSTEM_PROMPT = (
    "You are a skin vision analysis writer.\n"
    "RULES:\n"
    "1. Use the provided metrics as ground truth. Do not change scores.\n"
    "2. Tone: calm, technical. Avoid: warning, danger, patient, treatment, disease.\n"
    "3. Prefer: baseline, threshold, stability, variance, trajectory.\n"
    "4. For every dimension id return finding, mechanism and action text "
    "and a confidence between 0.78 and 0.92.\n"
    "5. summary_en is English, summary_zh is Traditional Chinese.\n"
    "Return JSON only."
)

# Summaries used when no narrative is available
SUMMARY_EN = (
    "Skin analysis complete. Multi-dimensional signals extracted and "
    "interpreted against the reference baseline."
)
SUMMARY_ZH = "皮膚分析完成。系統已完成多維度訊號擷取與解讀。"
SUMMARY_DEGRADED_EN = (
    "Analysis completed in reduced-confidence mode. Signals are estimated; "
    "retake the scan for a full reading."
)
SUMMARY_DEGRADED_ZH = "分析以降級模式完成，訊號為估算值，建議重新掃描以取得完整讀數。"

# Narrative sources
SOURCE_VENDOR = "vendor"
SOURCE_TEMPLATE = "template"

# Log messages
MSG_SERVER_STARTING = "Starting scan server on %s:%d…"
MSG_STAGE = "[%s] stage → %s (%.2fs left)"
MSG_DEGRADED = "[%s] degraded at %s: %s"
MSG_DONE = "[%s] done in %.2fs (degraded=%s)"
MSG_NO_VISION = "Vision backend not configured (YOUCAM_API_KEY missing)"
MSG_NO_NARRATIVE = "Narrative backend not configured — templates only"
MSG_POLL_TRANSIENT = "%s poll attempt %d failed transiently: %s"
MSG_POLL_STATUS = "%s poll attempt %d: %s"
MSG_NARRATIVE_FAILED = "[%s] narrative enrichment failed, using templates: %s"
MSG_NARRATIVE_SKIPPED = "[%s] narrative skipped: %.2fs left"
MSG_MISSING_CHANNEL = "Vendor omitted channel %s — substituting %d"
MSG_BAD_OVERRIDE = "Dropping malformed narrative entry for %s"
MSG_INVALID_REQUEST = "invalid_request"
MSG_PRECHECK_REJECTED = "Primary image failed precheck: %s"
MSG_UNEXPECTED = "[%s] unexpected failure at %s"
MSG_REJECTED = "Rejected scan request: %s"
MSG_TASK_STARTED = "YouCam task started: %s"
MSG_NO_CHANNELS = "vision task %s returned no usable channels"
