"""All magic numbers and configuration constants."""

GROW_DURATION_MS = 1000             # ms for bars to rise from zero to their value
GROW_STAGGER_DIVISOR = 6            # per-bar delay = i * (GROW_DURATION_MS / n) / divisor
BUMP_LIFT_FRACTION = 0.07           # fraction of chart height a bar lifts when highlighted
BUMP_PHASE_MS = 300                 # ms per bump phase (up, then return)
SUBTITLE_FADE_OUT_MS = 200          # ms to fade out the previous phrase
SUBTITLE_FADE_IN_MS = 300           # ms to fade in the next phrase
SUBTITLE_END_DELAY_MS = 300         # ms before the last phrase fades after speech ends
SUBTITLE_END_FADE_MS = 600          # ms for the final fade out
SUBTITLE_FONT_RATIO = 0.06          # font size = ratio * min(width, height)
SUBTITLE_WIDTH_RATIO = 0.9          # phrase pixel budget = ratio * width
SUBTITLE_BASELINE_RATIO = 0.9       # subtitle y = ratio * chart height
SUBTITLE_SAMPLE_CHAR = "A"          # measured once to estimate chars per phrase
BAND_PADDING = 0.2                  # inner/outer padding of the category band scale
AXIS_MARGIN_BOTTOM = 25             # px reserved for the x axis when shown
AXIS_FONT_MULTIPLIER = 0.03         # axis font size = multiplier * min(width, height)
MIN_OPACITY = 10                    # percent
MAX_OPACITY = 100                   # percent
DEFAULT_VOICE = "en-US-AriaNeural"  # edge-tts narration voice
DEFAULT_RATE = "+0%"                # relative speech rate
TTS_RETRY_COUNT = 3                 # max synthesis attempts
TTS_RETRY_BASE_DELAY = 1.0          # seconds, base delay for exponential backoff
TICKS_PER_MS = 10_000               # edge-tts offsets are 100ns ticks
WATCHDOG_GRACE_SECONDS = 5.0        # extra wait after expected speech end
DEFAULT_VIEWPORT = (640, 480)       # px (width, height)
OUTPUT_BITRATE = "128k"             # MP3 output bitrate
OUTPUT_DIR = "output"
FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"
VERSION = "0.1.0"
