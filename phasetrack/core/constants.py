KINECT_JOINTS = [
    "SpineBase",
    "SpineMid",
    "Neck",
    "Head",
    "ShoulderLeft",
    "ElbowLeft",
    "WristLeft",
    "HandLeft",
    "ShoulderRight",
    "ElbowRight",
    "WristRight",
    "HandRight",
    "HipLeft",
    "KneeLeft",
    "AnkleLeft",
    "FootLeft",
    "HipRight",
    "KneeRight",
    "AnkleRight",
    "FootRight",
    "SpineShoulder",
    "HandTipLeft",
    "ThumbLeft",
    "HandTipRight",
    "ThumbRight",
]

# Fixed column order of every track log record.
LOGGED_JOINTS = [
    "Head",
    "Neck",
    "ShoulderLeft",
    "ShoulderRight",
    "ElbowLeft",
    "ElbowRight",
    "WristLeft",
    "WristRight",
    "SpineBase",
    "HipLeft",
    "HipRight",
    "KneeLeft",
    "KneeRight",
    "FootLeft",
    "FootRight",
]

TRACKING_STATES = ["NotTracked", "Inferred", "Tracked"]

# Labels emitted on phase advance, in the only order they can occur.
TRANSITION_LABELS = ["start", "f0", "f1", "f2", "f3", "f4"]

DEFAULT_DECIMAL_PLACES = 4
DEFAULT_KNEE_TOLERANCE = "0.0155"
DEFAULT_FOOT_RAISE_THRESHOLD = "0.1"
DEFAULT_FOOT_GROUND_THRESHOLD = "1.75"

# Camera-space metres; anything beyond this is a corrupt reading.
MAX_COORDINATE_ABS = 1000.0
