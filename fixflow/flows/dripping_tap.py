# fixflow/flows/dripping_tap.py
"""
Dripping or leaking tap.

Finds out which tap it is and how bad the drip is, tries the "not fully
closed" fix, and otherwise works out which part a plumber will need.
"""

from fixflow.flows.builders import always, escalate, goto, on_response, resolve, response, retry
from fixflow.models.flow_models import Flow

STEPS = [
    {
        "id": "identify_location",
        "type": "question",
        "template": (
            "Let's sort out that dripping tap. First, where is the tap located?\n\n"
            "Is it in the kitchen, bathroom, or somewhere else?"
        ),
        "extract": ["location"],
        "expected_responses": [
            response("kitchen", [r"^kitchen", r"kitchen (sink|tap)"],
                     "Kitchen tap",
                     ["Kitchen", "Kitchen sink", "The kitchen tap"]),
            response("bathroom_sink", [r"bathroom", r"basin", r"wash basin", r"bathroom sink"],
                     "Bathroom basin/sink tap",
                     ["Bathroom", "Bathroom sink", "The basin"]),
            response("bath", [r"^bath$", r"bathtub", r"bath tap"],
                     "Bath tap",
                     ["Bath", "Bathtub", "The bath tap"]),
            response("shower", [r"shower"],
                     "Shower tap/mixer",
                     ["Shower", "Shower mixer", "In the shower"]),
            response("outside", [r"outside", r"garden", r"outdoor", r"external"],
                     "Outside/garden tap",
                     ["Outside", "Garden tap", "External tap"]),
            response("utility", [r"utility", r"laundry", r"garage"],
                     "Utility room tap",
                     ["Utility room", "Laundry room", "Garage"]),
        ],
        "transitions": [
            on_response("kitchen", goto("check_severity")),
            on_response("bathroom_sink", goto("check_severity")),
            on_response("bath", goto("check_severity")),
            on_response("shower", goto("check_shower_type")),
            on_response("outside", goto("check_outside_tap")),
            on_response("utility", goto("check_severity")),
        ],
        "fallback_transition": always(retry(
            "Which room is the dripping tap in? For example: kitchen, bathroom, bath, or shower?"
        )),
    },
    {
        "id": "check_shower_type",
        "type": "question",
        "template": "Is this a shower with separate hot and cold taps, or is it a mixer/thermostatic valve?",
        "expected_responses": [
            response("separate_taps", [r"separate", r"two taps", r"hot and cold", r"individual"],
                     "Separate hot and cold taps",
                     ["Separate taps", "Has two taps", "Hot and cold separately"]),
            response("mixer", [r"mixer", r"one tap", r"single", r"thermostatic", r"valve"],
                     "Mixer or thermostatic valve",
                     ["Mixer", "It's one tap", "Thermostatic", "Single valve"]),
            response("electric", [r"electric", r"power shower", r"mira", r"triton"],
                     "Electric shower",
                     ["Electric shower", "Power shower", "It's a Mira"]),
        ],
        "transitions": [
            on_response("separate_taps", goto("check_severity")),
            on_response("mixer", escalate(
                "Mixer/thermostatic shower valve dripping - requires cartridge replacement",
                ["Shower make/model if visible", "Is it dripping from the head or valve body?"],
            )),
            on_response("electric", escalate(
                "Electric shower dripping - specialist repair needed for safety",
                ["Shower make/model", "Where is water dripping from?"],
            )),
        ],
        "fallback_transition": always(goto("check_severity")),
    },
    {
        "id": "check_outside_tap",
        "type": "question",
        "template": (
            "Outside taps can freeze and crack in cold weather. Is the tap:\n\n"
            "1. Just dripping from the spout when closed\n"
            "2. Leaking from around the tap body/handle\n"
            "3. Frozen or stuck"
        ),
        "expected_responses": [
            response("dripping_spout", [r"spout", r"dripping.*closed", r"from.*end", r"^1$", r"just dripping"],
                     "Dripping from spout when closed",
                     ["From the spout", "Just dripping when off", "1"]),
            response("leaking_body", [r"body", r"handle", r"around", r"base", r"leak.*wall", r"^2$"],
                     "Leaking from tap body or around handle",
                     ["Around the handle", "From the body", "Near the wall", "2"]),
            response("frozen", [r"frozen", r"stuck", r"won't turn", r"ice", r"^3$"],
                     "Tap is frozen or stuck",
                     ["Frozen", "Won't turn", "Stuck", "3"]),
        ],
        "transitions": [
            on_response("dripping_spout", goto("check_severity")),
            on_response("leaking_body", escalate(
                "Outside tap leaking from body - may need replacement",
                ["Is there an isolation valve to turn it off?", "How severe is the leak?"],
            )),
            on_response("frozen", goto("frozen_tap_advice")),
        ],
        "fallback_transition": always(goto("check_severity")),
    },
    {
        "id": "frozen_tap_advice",
        "type": "instruction",
        "template": (
            "**Do not force a frozen tap - it could crack!**\n\n"
            "Instead:\n"
            "1. Apply gentle heat with warm (not boiling) water wrapped in a cloth\n"
            "2. Or use a hairdryer on low setting\n"
            "3. Never use a blowtorch or naked flame\n\n"
            "If the pipe behind it looks damaged or bulging, please let me know immediately.\n\n"
            "Does the pipe look normal or is there visible damage?"
        ),
        "expected_responses": [
            response("looks_ok", [r"ok", r"normal", r"fine", r"looks.*good", r"no damage"],
                     "Pipe looks normal",
                     ["Looks ok", "No damage", "Seems fine"]),
            response("damaged", [r"damage", r"bulge", r"crack", r"split", r"burst", r"leak"],
                     "Visible damage to pipe",
                     ["There is a crack", "It's bulging", "I can see damage"]),
        ],
        "transitions": [
            on_response("looks_ok", resolve(
                "Let the tap thaw slowly with gentle heat. Once thawed, check if it works normally. "
                "If it still drips, let us know and we can arrange a repair."
            )),
            on_response("damaged", escalate(
                "URGENT: Frozen pipe with visible damage - potential burst pipe",
                ["Location of isolation valve", "Water currently leaking?"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Frozen outside tap needs inspection",
            ["Photo of tap and pipe"],
        )),
    },
    {
        "id": "check_severity",
        "type": "question",
        "template": (
            "How bad is the drip? Is it:\n\n"
            "1. A slow drip (a few drops per minute)\n"
            "2. A steady drip (drip every few seconds)\n"
            "3. A fast drip or running water"
        ),
        "expected_responses": [
            response("slow", [r"slow", r"few drops", r"occasional", r"not.*bad", r"^1$", r"once.*while"],
                     "Slow, occasional drip",
                     ["Slow", "Just a few drops", "Not too bad", "1", "Every now and then"]),
            response("steady", [r"steady", r"every.*second", r"constant", r"regular", r"^2$"],
                     "Steady, constant dripping",
                     ["Steady drip", "Every few seconds", "Constant", "2"]),
            response("fast", [r"fast", r"running", r"stream", r"lot", r"bad", r"^3$", r"pouring"],
                     "Fast drip or running water",
                     ["Running water", "Really bad", "Fast", "3", "Pouring"]),
        ],
        "transitions": [
            on_response("slow", goto("try_tightening")),
            on_response("steady", goto("try_tightening")),
            on_response("fast", goto("isolate_water")),
        ],
        "fallback_transition": always(retry(
            "How often is it dripping? Just occasionally (1), steadily every few seconds (2), or running fast (3)?"
        )),
    },
    {
        "id": "isolate_water",
        "type": "instruction",
        "template": (
            "That sounds like more than a drip - we should try to reduce the flow if possible.\n\n"
            "Check under the sink for isolation valves (small handles or screwdriver slots on the pipes). "
            "Try turning them clockwise to reduce the flow.\n\n"
            "Did that help slow or stop the flow?"
        ),
        "expected_responses": [
            response("found_stopped", [r"stopped", r"found", r"worked", r"slowed", r"better"],
                     "Found valve and reduced flow",
                     ["Yes found it", "Stopped now", "Much better", "Slowed down"]),
            response("no_valve", [r"no valve", r"can't find", r"nothing there", r"no", r"didn't work"],
                     "Cannot find valve or did not help",
                     ["No valve", "Can't find one", "Didn't work", "There's nothing"]),
        ],
        "transitions": [
            on_response("found_stopped", goto("try_tightening")),
            on_response("no_valve", escalate(
                "Fast-running tap - needs urgent repair",
                ["Is there a stopcock to turn off water?", "Can you place a container to catch water?"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Fast-dripping tap needs professional attention",
            ["Location of the tap", "Type of tap (mixer or separate)"],
        )),
    },
    {
        "id": "try_tightening",
        "type": "instruction",
        "template": (
            "Sometimes taps drip because they're not fully closed. Try:\n\n"
            "1. Turn the tap firmly to the fully closed position\n"
            "2. For lever taps, push the lever firmly down or up\n"
            "3. For mixer taps, make sure both handles are fully off\n\n"
            "**Don't force it** - if it won't turn any further, that's fine.\n\n"
            "Did that stop the drip?"
        ),
        "expected_responses": [
            response("fixed", [r"stopped", r"fixed", r"worked", r"no.*drip", r"yes"],
                     "Drip has stopped",
                     ["Yes", "Stopped!", "Fixed", "That worked", "No more drip"]),
            response("still_dripping", [r"still drip", r"no", r"didn't work", r"same", r"not.*stopped"],
                     "Still dripping",
                     ["Still dripping", "No", "Didn't work", "Same as before"]),
            response("stuck", [r"stuck", r"stiff", r"won't turn", r"hard to turn"],
                     "Tap is stuck or stiff",
                     ["Very stiff", "Won't turn", "It's stuck"]),
        ],
        "transitions": [
            on_response("fixed", goto("confirm_fixed")),
            on_response("still_dripping", goto("check_tap_type")),
            on_response("stuck", goto("stiff_tap_advice")),
        ],
        "fallback_transition": always(retry("Did turning the tap more firmly stop the dripping?")),
    },
    {
        "id": "stiff_tap_advice",
        "type": "instruction",
        "template": (
            "A stiff tap often means it needs servicing. **Don't force it** as you could damage the valve.\n\n"
            "You can try applying a tiny bit of WD-40 or similar lubricant around the spindle (where the handle "
            "meets the body), then gently working the tap back and forth.\n\n"
            "Did that help loosen it?"
        ),
        "expected_responses": [
            response("loosened", [r"loosened", r"better", r"easier", r"worked", r"yes"],
                     "Tap moves easier now",
                     ["Better now", "Yes loosened", "Easier to turn"]),
            response("still_stiff", [r"still stiff", r"no", r"same", r"didn't help"],
                     "Still stiff",
                     ["Still stiff", "No change", "Didn't help"]),
        ],
        "transitions": [
            on_response("loosened", goto("try_tightening")),
            on_response("still_stiff", escalate(
                "Tap is very stiff - may need new washer or cartridge",
                ["How old is the tap?", "Type of tap (twist, lever, mixer)?"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Stiff tap needs professional attention",
            ["Type of tap"],
        )),
    },
    {
        "id": "check_tap_type",
        "type": "question",
        "template": (
            "The tap probably needs a new washer or cartridge. To understand what's needed, what type of tap is it?\n\n"
            "1. Traditional twist tap (turn the handle/cross top)\n"
            "2. Lever tap (flip up/down or side to side)\n"
            "3. Mixer tap (one spout, two controls)"
        ),
        "expected_responses": [
            response("twist", [r"twist", r"turn", r"traditional", r"cross", r"round", r"^1$"],
                     "Traditional twist tap",
                     ["Twist", "Traditional", "You turn it", "1", "Cross handle"]),
            response("lever", [r"lever", r"flip", r"push", r"^2$"],
                     "Lever tap",
                     ["Lever", "Flip up/down", "2"]),
            response("mixer", [r"mixer", r"one spout", r"single", r"^3$"],
                     "Mixer tap",
                     ["Mixer", "Single spout", "3", "One tap"]),
        ],
        "transitions": [
            on_response("twist", escalate(
                "Traditional tap dripping - likely needs new washer",
                ["Is it hot, cold, or both taps?", "Photo of the tap"],
            )),
            on_response("lever", escalate(
                "Lever tap dripping - likely needs new ceramic cartridge",
                ["Is it hot, cold, or both?", "Tap make/brand if visible"],
            )),
            on_response("mixer", escalate(
                "Mixer tap dripping - may need cartridge or O-rings",
                ["Is it dripping from spout or around base?", "Tap make/brand if visible"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Dripping tap needs repair",
            ["Photo of the tap", "Hot, cold, or both?"],
        )),
    },
    {
        "id": "confirm_fixed",
        "type": "confirmation",
        "template": "Excellent! Watch it for a minute to make sure it stays dry. Is it still not dripping?",
        "confirmation_required": True,
        "expected_responses": [
            response("confirmed_fixed", [r"yes", r"still.*dry", r"fixed", r"good", r"stopped"],
                     "Confirmed fixed",
                     ["Yes", "Still dry", "All good", "Confirmed"]),
            response("started_again", [r"started", r"dripping again", r"no", r"back"],
                     "Started dripping again",
                     ["Started again", "Dripping again", "No", "It's back"]),
        ],
        "transitions": [
            on_response("confirmed_fixed", resolve(
                "The tap was just not fully closed. If it starts dripping again in future, it may need a new "
                "washer - just let us know!"
            )),
            on_response("started_again", goto("check_tap_type")),
        ],
        "fallback_transition": always(resolve(
            "Hopefully the tap is fixed now. If it starts dripping again, it probably needs a new washer - "
            "just let us know!"
        )),
    },
]

DRIPPING_TAP_FLOW = Flow.model_validate({
    "id": "dripping_tap",
    "name": "Dripping Tap",
    "description": "Troubleshoot a dripping or leaking tap in the property.",
    "category": "plumbing",
    "trigger_keywords": [
        "dripping tap",
        "leaking tap",
        "tap drips",
        "faucet dripping",
        "tap leaking",
        "water dripping",
        "tap won't stop",
        "running tap",
    ],
    "safe_for_diy": True,
    "safety_warning": None,
    "max_attempts": 3,
    "estimated_time_minutes": 5,
    "steps": STEPS,
    "escalation_data_needed": [
        "Location of the tap (kitchen/bathroom/etc)",
        "Type of tap (twist/lever/mixer)",
        "Is it hot, cold, or both",
        "Make/brand if visible",
        "Photo of the tap",
    ],
})
