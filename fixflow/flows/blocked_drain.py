# fixflow/flows/blocked_drain.py
"""
Blocked drain in a sink, shower, bath, toilet or outside gully.

Each location has its own entry path; they converge on the shared boiling
water / baking soda steps and the final confirmation or callout.
"""

from fixflow.flows.builders import always, end_flow, escalate, goto, on_response, resolve, response, retry
from fixflow.models.flow_models import Flow

STEPS = [
    {
        "id": "identify_location",
        "type": "question",
        "template": (
            "Let's get that drain unblocked. First, which drain is blocked?\n\n"
            "1. Kitchen sink\n"
            "2. Bathroom sink\n"
            "3. Shower or bath\n"
            "4. Toilet\n"
            "5. Outside drain"
        ),
        "extract": ["location"],
        "expected_responses": [
            response("kitchen_sink", [r"kitchen", r"^1$", r"kitchen sink"],
                     "Kitchen sink drain",
                     ["Kitchen", "1", "Kitchen sink", "The kitchen one"]),
            response("bathroom_sink", [r"bathroom sink", r"basin", r"hand basin", r"^2$"],
                     "Bathroom sink/basin",
                     ["Bathroom sink", "2", "Basin", "Hand basin"]),
            response("shower_bath", [r"shower", r"bath", r"^3$", r"tub"],
                     "Shower or bath drain",
                     ["Shower", "Bath", "3", "The bathtub"]),
            response("toilet", [r"toilet", r"loo", r"wc", r"^4$"],
                     "Toilet",
                     ["Toilet", "4", "The loo", "WC"]),
            response("outside", [r"outside", r"external", r"garden", r"yard", r"^5$", r"gully"],
                     "Outside/external drain",
                     ["Outside", "5", "External drain", "Garden drain"]),
        ],
        "transitions": [
            on_response("kitchen_sink", goto("kitchen_check_trap")),
            on_response("bathroom_sink", goto("bathroom_sink_check")),
            on_response("shower_bath", goto("shower_check_debris")),
            on_response("toilet", goto("toilet_severity")),
            on_response("outside", goto("outside_drain_check")),
        ],
        "fallback_transition": always(retry(
            "Which drain is blocked? Kitchen sink (1), Bathroom sink (2), Shower/Bath (3), Toilet (4), "
            "or Outside drain (5)?"
        )),
    },

    # Kitchen sink

    {
        "id": "kitchen_check_trap",
        "type": "instruction",
        "template": (
            "Kitchen sinks often block due to food debris or grease. Before we try unblocking, let's check the trap.\n\n"
            "Look under the sink - do you see a U-shaped or bottle-shaped pipe? This is the trap that often holds "
            "the blockage.\n\n"
            "Do you see it?"
        ),
        "expected_responses": [
            response("see_trap", [r"yes", r"see it", r"found it", r"u shape", r"bottle"],
                     "Can see the trap",
                     ["Yes", "I see it", "Found it", "Yes there is a U-shape"]),
            response("no_trap", [r"no", r"can't see", r"not sure", r"hidden"],
                     "Cannot see trap",
                     ["No", "Can't see it", "Hidden behind cabinet"]),
        ],
        "transitions": [
            on_response("see_trap", goto("kitchen_try_plunger")),
            on_response("no_trap", goto("try_boiling_water")),
        ],
        "fallback_transition": always(goto("try_boiling_water")),
    },
    {
        "id": "kitchen_try_plunger",
        "type": "instruction",
        "template": (
            "Let's try to clear it with a plunger first.\n\n"
            "**Important for double sinks**: Block the other drain with a wet cloth.\n\n"
            "1. Fill the sink with a few inches of water\n"
            "2. Place the plunger over the drain hole\n"
            "3. Push down and pull up vigorously 10-15 times\n"
            "4. Check if water drains\n\n"
            "Do you have a plunger, or should I suggest an alternative?"
        ),
        "expected_responses": [
            response("have_plunger", [r"have.*plunger", r"yes", r"got one", r"will try"],
                     "Has a plunger",
                     ["I have one", "Yes", "Got a plunger", "I'll try"]),
            response("no_plunger", [r"no plunger", r"don't have", r"no", r"alternative"],
                     "Does not have a plunger",
                     ["Don't have one", "No plunger", "Need alternative"]),
            response("tried_worked", [r"worked", r"draining", r"cleared", r"fixed"],
                     "Plunging worked",
                     ["That worked!", "It's draining now", "Cleared!"]),
            response("tried_failed", [r"didn't work", r"still blocked", r"no luck", r"same"],
                     "Plunging did not work",
                     ["Didn't work", "Still blocked", "No change"]),
        ],
        "transitions": [
            on_response("have_plunger", goto("wait_for_plunger_result")),
            on_response("no_plunger", goto("try_boiling_water")),
            on_response("tried_worked", goto("confirm_fixed")),
            on_response("tried_failed", goto("try_boiling_water")),
        ],
        "fallback_transition": always(goto("wait_for_plunger_result")),
    },
    {
        "id": "wait_for_plunger_result",
        "type": "question",
        "template": "Give the plunging a good try. Did it clear the blockage?",
        "expected_responses": [
            response("worked", [r"yes", r"worked", r"cleared", r"draining", r"fixed"],
                     "Blockage cleared",
                     ["Yes!", "Worked", "Cleared", "It's draining now"]),
            response("not_worked", [r"no", r"still", r"didn't", r"blocked"],
                     "Still blocked",
                     ["No", "Still blocked", "Didn't work"]),
        ],
        "transitions": [
            on_response("worked", goto("confirm_fixed")),
            on_response("not_worked", goto("try_boiling_water")),
        ],
        "fallback_transition": always(goto("try_boiling_water")),
    },

    # Shared hot water / natural cleaner steps

    {
        "id": "try_boiling_water",
        "type": "instruction",
        "template": (
            "Let's try boiling water - this works well for grease blockages.\n\n"
            "1. Boil a full kettle\n"
            "2. Pour the boiling water directly down the drain in 2-3 stages\n"
            "3. Wait 5-10 seconds between each pour\n"
            "4. Check if water drains better\n\n"
            "**Safety**: Be careful with boiling water!\n\n"
            "Did that help clear the blockage?"
        ),
        "expected_responses": [
            response("worked", [r"yes", r"worked", r"draining", r"better", r"cleared"],
                     "Boiling water worked",
                     ["Yes!", "That worked", "Draining better now"]),
            response("partial", [r"a bit", r"little", r"slightly", r"some"],
                     "Partial improvement",
                     ["A bit better", "Slightly improved", "Helped a little"]),
            response("not_worked", [r"no", r"still", r"didn't", r"same", r"blocked"],
                     "Did not help",
                     ["No", "Still blocked", "Same as before"]),
        ],
        "transitions": [
            on_response("worked", goto("confirm_fixed")),
            on_response("partial", goto("try_baking_soda")),
            on_response("not_worked", goto("try_baking_soda")),
        ],
        "fallback_transition": always(goto("try_baking_soda")),
    },
    {
        "id": "try_baking_soda",
        "type": "instruction",
        "template": (
            "Let's try a natural drain cleaner. Do you have baking soda and white vinegar?\n\n"
            "If yes:\n"
            "1. Pour 1/2 cup baking soda down the drain\n"
            "2. Follow with 1/2 cup white vinegar\n"
            "3. Cover the drain and wait 15-30 minutes\n"
            "4. Flush with more boiling water\n\n"
            "Or if you have drain unblocker, try that instead.\n\n"
            "Let me know what you have and I'll guide you."
        ),
        "expected_responses": [
            response("have_both", [r"have both", r"yes", r"have them", r"got both", r"baking soda.*vinegar"],
                     "Has baking soda and vinegar",
                     ["Have both", "Yes I have them", "Got baking soda and vinegar"]),
            response("have_unblocker", [r"unblocker", r"drain cleaner", r"drano", r"mr muscle"],
                     "Has commercial drain unblocker",
                     ["Got drain unblocker", "Have Mr Muscle", "Got some Drano"]),
            response("have_nothing", [r"nothing", r"don't have", r"no", r"neither"],
                     "Does not have either",
                     ["Don't have any", "No", "Neither"]),
            response("tried_worked", [r"worked", r"cleared", r"draining", r"fixed"],
                     "It worked",
                     ["That worked!", "Cleared now", "It's draining"]),
            response("tried_failed", [r"didn't work", r"still blocked", r"no luck"],
                     "Did not work",
                     ["Didn't work", "Still blocked"]),
        ],
        "transitions": [
            on_response("have_both", goto("wait_baking_soda")),
            on_response("have_unblocker", goto("use_unblocker")),
            on_response("have_nothing", goto("escalate_professional")),
            on_response("tried_worked", goto("confirm_fixed")),
            on_response("tried_failed", goto("escalate_professional")),
        ],
        "fallback_transition": always(goto("escalate_professional")),
    },
    {
        "id": "wait_baking_soda",
        "type": "question",
        "template": (
            "Great! Try the baking soda and vinegar method I described. Wait 15-30 minutes, then flush with "
            "boiling water.\n\n"
            "Let me know how it went - did it clear the blockage?"
        ),
        "expected_responses": [
            response("worked", [r"worked", r"cleared", r"draining", r"yes", r"fixed"],
                     "Blockage cleared",
                     ["Worked!", "Cleared", "Yes draining now"]),
            response("not_worked", [r"no", r"still", r"blocked", r"didn't"],
                     "Still blocked",
                     ["Still blocked", "No", "Didn't work"]),
        ],
        "transitions": [
            on_response("worked", goto("confirm_fixed")),
            on_response("not_worked", goto("escalate_professional")),
        ],
        "fallback_transition": always(goto("escalate_professional")),
    },
    {
        "id": "use_unblocker",
        "type": "instruction",
        "template": (
            "Commercial drain unblocker should help. Follow the instructions on the bottle - usually:\n\n"
            "1. Pour recommended amount down drain\n"
            "2. Wait the specified time (often 15-30 mins)\n"
            "3. Flush with hot water\n\n"
            "**Warning**: Don't mix different drain cleaners - this can cause dangerous fumes!\n\n"
            "Try that and let me know if it worked."
        ),
        "expected_responses": [
            response("worked", [r"worked", r"cleared", r"draining", r"yes", r"fixed"],
                     "Unblocker worked",
                     ["That worked!", "Cleared now", "Draining"]),
            response("not_worked", [r"no", r"still", r"blocked", r"didn't"],
                     "Still blocked",
                     ["Still blocked", "Didn't work"]),
        ],
        "transitions": [
            on_response("worked", goto("confirm_fixed")),
            on_response("not_worked", goto("escalate_professional")),
        ],
        "fallback_transition": always(goto("escalate_professional")),
    },

    # Bathroom sink

    {
        "id": "bathroom_sink_check",
        "type": "instruction",
        "template": (
            "Bathroom sinks often block due to hair and soap buildup around the plug.\n\n"
            "First, check if there's a pop-up plug that can be removed. If you can see hair or debris near the "
            "drain opening, try to remove it with tweezers or needle-nose pliers.\n\n"
            "Were you able to remove any debris?"
        ),
        "expected_responses": [
            response("removed_debris", [r"removed", r"pulled out", r"got it", r"yes", r"lots"],
                     "Removed debris",
                     ["Removed lots of hair", "Pulled it out", "Yes got some gunk"]),
            response("no_debris", [r"nothing", r"no", r"can't see", r"clean"],
                     "No visible debris",
                     ["Nothing there", "Can't see anything", "Looks clean"]),
            response("draining_now", [r"draining", r"fixed", r"working", r"cleared"],
                     "Now draining",
                     ["It's draining now!", "Fixed!", "That cleared it"]),
        ],
        "transitions": [
            on_response("draining_now", goto("confirm_fixed")),
            on_response("removed_debris", goto("try_boiling_water")),
            on_response("no_debris", goto("try_boiling_water")),
        ],
        "fallback_transition": always(goto("try_boiling_water")),
    },

    # Shower or bath

    {
        "id": "shower_check_debris",
        "type": "instruction",
        "template": (
            "Shower and bath drains almost always block due to hair buildup.\n\n"
            "1. Remove the drain cover (it usually lifts off or unscrews)\n"
            "2. Look for hair wrapped around the cross bars or caught below\n"
            "3. Use a bent coat hanger, zip-it tool, or needle-nose pliers to pull out hair\n\n"
            "**Tip**: You'll probably pull out a lot - this is normal!\n\n"
            "Were you able to remove any hair?"
        ),
        "expected_responses": [
            response("removed_hair", [r"removed", r"pulled", r"lot", r"gross", r"yes", r"disgusting"],
                     "Removed hair",
                     ["Pulled out loads", "Yes removed lots", "Gross but got it"]),
            response("cant_access", [r"can't.*off", r"stuck", r"won't budge", r"no cover"],
                     "Cannot access drain",
                     ["Can't get cover off", "It's stuck", "No removable cover"]),
            response("draining_now", [r"draining", r"fixed", r"cleared", r"working"],
                     "Now draining",
                     ["Draining now!", "That fixed it", "Cleared"]),
        ],
        "transitions": [
            on_response("draining_now", goto("confirm_fixed")),
            on_response("removed_hair", goto("shower_test_drain")),
            on_response("cant_access", goto("try_boiling_water")),
        ],
        "fallback_transition": always(goto("shower_test_drain")),
    },
    {
        "id": "shower_test_drain",
        "type": "question",
        "template": "Good work! Run some water and see if it drains better now.\n\nIs the water draining properly?",
        "expected_responses": [
            response("draining_well", [r"yes", r"draining", r"better", r"fixed", r"good"],
                     "Draining well now",
                     ["Yes!", "Much better", "Draining fine now"]),
            response("still_slow", [r"slow", r"still", r"bit", r"not quite"],
                     "Still draining slowly",
                     ["Still slow", "A bit better but not great"]),
            response("not_draining", [r"no", r"blocked", r"nothing", r"same"],
                     "Not draining",
                     ["Still blocked", "No change", "Not draining"]),
        ],
        "transitions": [
            on_response("draining_well", goto("confirm_fixed")),
            on_response("still_slow", goto("try_boiling_water")),
            on_response("not_draining", goto("try_boiling_water")),
        ],
        "fallback_transition": always(goto("try_boiling_water")),
    },

    # Toilet

    {
        "id": "toilet_severity",
        "type": "question",
        "template": (
            "Blocked toilets need careful handling. Is the water level:\n\n"
            "1. High/near the rim (might overflow)\n"
            "2. Normal level but won't flush away\n"
            "3. Very low or empty"
        ),
        "expected_responses": [
            response("high_level", [r"high", r"rim", r"overflow", r"full", r"^1$", r"rising"],
                     "Water level high",
                     ["High", "Near the rim", "Might overflow", "1"]),
            response("normal_level", [r"normal", r"won't flush", r"stuck", r"^2$"],
                     "Normal level but blocked",
                     ["Normal level", "Won't flush", "2"]),
            response("low_level", [r"low", r"empty", r"no water", r"^3$"],
                     "Low or empty",
                     ["Very low", "Empty", "3"]),
        ],
        "transitions": [
            on_response("high_level", goto("toilet_high_warning")),
            on_response("normal_level", goto("toilet_try_plunger")),
            on_response("low_level", goto("toilet_low_check")),
        ],
        "fallback_transition": always(goto("toilet_try_plunger")),
    },
    {
        "id": "toilet_high_warning",
        "type": "instruction",
        "template": (
            "**Don't flush again** - it could overflow!\n\n"
            "First, let's stop more water entering:\n"
            "1. Remove the cistern lid (top of the toilet)\n"
            "2. If you see a float/ball, hold it up to stop water\n"
            "3. Or turn off the isolation valve behind the toilet (turn clockwise)\n\n"
            "Once you've done that, wait 10 minutes for the water level to drop naturally.\n\n"
            "Has the water level dropped at all?"
        ),
        "expected_responses": [
            response("level_dropped", [r"dropped", r"lower", r"going down", r"yes", r"better"],
                     "Water level has dropped",
                     ["Yes dropping", "Level is lower", "Going down slowly"]),
            response("still_high", [r"still high", r"no", r"same", r"not moving"],
                     "Level still high",
                     ["Still high", "No change", "Not moving"]),
        ],
        "transitions": [
            on_response("level_dropped", goto("toilet_try_plunger")),
            on_response("still_high", escalate(
                "Toilet blocked with high water level - risk of overflow",
                ["Is there another toilet in property?", "Has the isolation valve been turned off?"],
            )),
        ],
        "fallback_transition": always(goto("toilet_try_plunger")),
    },
    {
        "id": "toilet_low_check",
        "type": "question",
        "template": (
            "A very low water level could mean:\n"
            "- A severe blockage further down\n"
            "- A problem with the main drain\n\n"
            "Are any other drains in the property running slowly or backing up?"
        ),
        "expected_responses": [
            response("other_drains_slow", [r"yes", r"other", r"also", r"all", r"everywhere"],
                     "Other drains also affected",
                     ["Yes other drains too", "All slow", "Everywhere backing up"]),
            response("only_toilet", [r"no", r"just.*toilet", r"only", r"fine"],
                     "Only toilet affected",
                     ["No just the toilet", "Only this one", "Others are fine"]),
        ],
        "transitions": [
            on_response("other_drains_slow", escalate(
                "Multiple drains affected - possible main drain blockage",
                ["Ground floor or upper floor?", "Any outside drain covers visible?"],
            )),
            on_response("only_toilet", goto("toilet_try_plunger")),
        ],
        "fallback_transition": always(goto("toilet_try_plunger")),
    },
    {
        "id": "toilet_try_plunger",
        "type": "instruction",
        "template": (
            "Let's try plunging the toilet. You'll need a proper toilet plunger (shaped like a ball/cup).\n\n"
            "1. Make sure there's water in the bowl (add some if needed)\n"
            "2. Place the plunger over the hole at the bottom\n"
            "3. Push down slowly first to get a seal\n"
            "4. Then pump vigorously 15-20 times\n"
            "5. Pull up sharply on the last pump\n\n"
            "Did that clear it?"
        ),
        "expected_responses": [
            response("cleared", [r"cleared", r"worked", r"flushing", r"yes", r"fixed"],
                     "Blockage cleared",
                     ["Cleared!", "That worked", "Flushing now", "Fixed!"]),
            response("no_plunger", [r"no plunger", r"don't have", r"only.*sink plunger"],
                     "Does not have toilet plunger",
                     ["Don't have one", "No toilet plunger", "Only have a sink plunger"]),
            response("still_blocked", [r"still", r"no", r"didn't", r"blocked"],
                     "Still blocked",
                     ["Still blocked", "Didn't work", "No luck"]),
        ],
        "transitions": [
            on_response("cleared", goto("confirm_fixed")),
            on_response("no_plunger", goto("toilet_hot_water")),
            on_response("still_blocked", goto("toilet_hot_water")),
        ],
        "fallback_transition": always(goto("toilet_hot_water")),
    },
    {
        "id": "toilet_hot_water",
        "type": "instruction",
        "template": (
            "Let's try hot water with washing up liquid.\n\n"
            "1. Squirt some washing up liquid into the bowl\n"
            "2. Heat a bucket of water (hot but not boiling - to avoid cracking the toilet)\n"
            "3. Pour from waist height into the bowl\n"
            "4. Wait 10-15 minutes\n"
            "5. Try flushing\n\n"
            "Did that clear it?"
        ),
        "expected_responses": [
            response("cleared", [r"cleared", r"worked", r"flushing", r"yes", r"fixed"],
                     "Blockage cleared",
                     ["Yes!", "That worked", "Flushing now"]),
            response("still_blocked", [r"still", r"no", r"didn't", r"blocked"],
                     "Still blocked",
                     ["Still blocked", "Didn't work"]),
        ],
        "transitions": [
            on_response("cleared", goto("confirm_fixed")),
            on_response("still_blocked", goto("escalate_professional")),
        ],
        "fallback_transition": always(goto("escalate_professional")),
    },

    # Outside drain

    {
        "id": "outside_drain_check",
        "type": "question",
        "template": (
            "Outside drains can be blocked by leaves, debris, or grease. Can you lift the drain cover to look inside?\n\n"
            "**Safety**: Wear gloves if possible!\n\n"
            "Is the drain:\n"
            "1. Full of standing water\n"
            "2. Has visible debris/blockage\n"
            "3. Dry/empty"
        ),
        "expected_responses": [
            response("standing_water", [r"water", r"full", r"standing", r"^1$"],
                     "Full of standing water",
                     ["Full of water", "Standing water", "1"]),
            response("debris_visible", [r"debris", r"leaves", r"blockage", r"stuff", r"^2$"],
                     "Debris visible",
                     ["Lots of leaves", "Can see a blockage", "2"]),
            response("dry", [r"dry", r"empty", r"^3$"],
                     "Dry or empty",
                     ["Dry", "Empty", "3"]),
            response("cant_open", [r"can't open", r"stuck", r"won't lift", r"sealed"],
                     "Cannot open cover",
                     ["Can't lift it", "It's stuck", "Sealed shut"]),
        ],
        "transitions": [
            on_response("standing_water", goto("outside_clear_visible")),
            on_response("debris_visible", goto("outside_clear_visible")),
            on_response("dry", escalate(
                "Outside drain is dry - blockage may be further down the system",
                ["Are other drains in the house backing up?", "Location of drain"],
            )),
            on_response("cant_open", escalate(
                "Cannot access outside drain cover",
                ["Location of drain", "Type of cover (metal/plastic)"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Outside drain needs professional assessment",
            ["Location of drain", "Symptoms"],
        )),
    },
    {
        "id": "outside_clear_visible",
        "type": "instruction",
        "template": (
            "If you can see debris at the top:\n\n"
            "1. Put on rubber gloves\n"
            "2. Remove any leaves, dirt, or debris you can reach\n"
            "3. Use a stick or drain rod if you have one to push deeper debris\n"
            "4. Flush with a bucket of water\n\n"
            "**Note**: If there's a lot of grease or it's deeper than you can reach, we'll need a drainage "
            "specialist.\n\n"
            "Were you able to clear any debris?"
        ),
        "expected_responses": [
            response("cleared_draining", [r"cleared", r"draining", r"flowing", r"worked", r"yes"],
                     "Cleared and now draining",
                     ["Cleared it", "Draining now", "Water flowing"]),
            response("removed_some", [r"some", r"bit", r"still", r"deeper"],
                     "Removed some but still blocked",
                     ["Removed some but still blocked", "Goes deeper", "Can't reach it all"]),
            response("cant_reach", [r"can't reach", r"too deep", r"need.*tool", r"no"],
                     "Cannot reach the blockage",
                     ["Can't reach it", "Too deep", "Need proper tools"]),
        ],
        "transitions": [
            on_response("cleared_draining", goto("confirm_fixed")),
            on_response("removed_some", escalate(
                "Outside drain partially blocked - needs drain rods or jetting",
                ["Location of drain", "What debris was visible?"],
            )),
            on_response("cant_reach", escalate(
                "Outside drain blocked beyond reach - needs professional clearing",
                ["Location of drain"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Outside drain needs professional clearing",
            ["Location of drain"],
        )),
    },

    # Shared final steps

    {
        "id": "confirm_fixed",
        "type": "confirmation",
        "template": "Excellent! Run the water for a minute to make sure it's draining properly. Is it all working well now?",
        "confirmation_required": True,
        "expected_responses": [
            response("all_good", [r"yes", r"good", r"working", r"fixed", r"great", r"draining"],
                     "Confirmed working",
                     ["Yes all good", "Working great", "Fixed!"]),
            response("still_slow", [r"slow", r"bit", r"not quite", r"still"],
                     "Still a bit slow",
                     ["Still a bit slow", "Not quite right"]),
        ],
        "transitions": [
            on_response("all_good", resolve(
                "The drain is now clear. To prevent future blockages:\n"
                "- Kitchen: Avoid pouring grease down the drain\n"
                "- Bathroom: Use a drain cover to catch hair\n"
                "- Regular flush with hot water once a week"
            )),
            on_response("still_slow", goto("slow_drain_advice")),
        ],
        "fallback_transition": always(resolve(
            "Great, the drain should be clear now. Let us know if you have any more issues!"
        )),
    },
    {
        "id": "slow_drain_advice",
        "type": "instruction",
        "template": (
            "A slightly slow drain might just need time to fully clear, or there could be buildup further down.\n\n"
            "Try:\n"
            "1. Pour boiling water down once a day for the next few days\n"
            "2. Use a drain cleaner once a week for maintenance\n\n"
            "If it doesn't improve or gets worse, let us know and we'll arrange for it to be properly cleared.\n\n"
            "Is that OK?"
        ),
        "expected_responses": [
            response("ok", [r"ok", r"yes", r"fine", r"will do", r"thanks"],
                     "Acknowledged",
                     ["OK", "Will do", "Thanks"]),
        ],
        "transitions": [
            on_response("ok", resolve(
                "Keep an eye on it and let us know if it gets worse. A slow drain that persists might need "
                "professional clearing."
            )),
        ],
        "fallback_transition": always(resolve(
            "Let us know if the drain problem continues and we can arrange professional clearing."
        )),
    },
    {
        "id": "escalate_professional",
        "type": "confirmation",
        "template": (
            "It looks like this blockage needs professional attention. The drain may need:\n"
            "- Drain rods to reach the blockage\n"
            "- High-pressure water jetting\n"
            "- CCTV inspection for deeper issues\n\n"
            "I'll arrange for a drainage specialist to visit. Is there anything else you can tell me about the problem?"
        ),
        "expected_responses": [
            response("has_info", [r"smell", r"gurgling", r"backing up", r"multiple", r"sewage"],
                     "Has additional symptoms",
                     ["There is a smell", "It's gurgling", "Multiple drains affected"]),
            response("no_info", [r"no", r"nothing", r"that's all"],
                     "No additional info",
                     ["No", "That's everything"]),
        ],
        "transitions": [
            on_response("has_info", escalate(
                "Blocked drain needs professional clearing",
                ["Additional symptoms reported by tenant"],
            )),
            on_response("no_info", end_flow("needs_callout")),
        ],
        "fallback_transition": always(end_flow("needs_callout")),
    },
]

BLOCKED_DRAIN_FLOW = Flow.model_validate({
    "id": "blocked_drain",
    "name": "Blocked Drain",
    "description": "Troubleshoot blocked drains in sinks, showers, baths, toilets, and outside drains.",
    "category": "plumbing",
    "trigger_keywords": [
        "blocked drain",
        "drain blocked",
        "water not draining",
        "sink blocked",
        "shower blocked",
        "bath blocked",
        "toilet blocked",
        "clogged",
        "slow drain",
        "backing up",
        "won't drain",
    ],
    "safe_for_diy": True,
    "safety_warning": (
        "Never mix different drain cleaning chemicals - this can create dangerous fumes. "
        "Wear gloves when dealing with drains."
    ),
    "max_attempts": 3,
    "estimated_time_minutes": 10,
    "steps": STEPS,
    "escalation_data_needed": [
        "Which drain is affected",
        "Multiple drains or just one",
        "Any bad smells",
        "Ground floor or upper floor property",
        "Photo of the drain if possible",
    ],
})
