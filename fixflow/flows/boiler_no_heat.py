# fixflow/flows/boiler_no_heat.py
"""
Boiler not heating.

Walks the tenant through power, pressure and thermostat checks; the most
common DIY fix is topping the pressure back up via the filling loop.
"""

from fixflow.flows.builders import (
    after_attempts,
    always,
    end_flow,
    escalate,
    goto,
    on_media,
    on_response,
    resolve,
    response,
    retry,
)
from fixflow.models.flow_models import Flow

STEPS = [
    {
        "id": "check_power",
        "type": "question",
        "template": "Let's start by checking if your boiler has power. Can you see any lights or display on the boiler front panel?",
        "expected_responses": [
            response("power_yes", [r"^yes", r"^yeah", r"^yep", r"lights? on", r"display (is )?on", r"can see"],
                     "Boiler has power/lights visible",
                     ["Yes", "Yeah the lights are on", "I can see the display", "Yes there are lights"]),
            response("power_no", [r"^no", r"^nope", r"nothing", r"no lights?", r"blank", r"dead", r"off"],
                     "No power or lights visible",
                     ["No", "Nothing showing", "It looks dead", "No lights at all", "The display is blank"]),
            response("power_unsure", [r"not sure", r"don't know", r"can't tell", r"unsure", r"maybe"],
                     "User is unsure about power status",
                     ["I'm not sure", "Can't really tell", "I don't know what to look for"]),
        ],
        "transitions": [
            on_response("power_yes", goto("check_pressure")),
            on_response("power_no", goto("check_power_supply")),
            on_response("power_unsure", goto("locate_boiler")),
        ],
        "fallback_transition": always(retry(
            "I need to know if the boiler has power. Look at the front of the boiler - "
            "do you see any lights or a digital display showing numbers or text?"
        )),
    },
    {
        "id": "locate_boiler",
        "type": "instruction",
        "template": (
            "The boiler is usually in the kitchen, utility room, or airing cupboard. It's a white or cream box "
            "mounted on the wall with pipes going in and out. Can you find it and let me know if you see any "
            "lights on the front panel?"
        ),
        "expected_responses": [
            response("found_with_lights", [r"found", r"see it", r"yes.*light", r"light.*on"],
                     "Found boiler with lights",
                     ["Found it, lights are on", "Yes I can see it, there are lights"]),
            response("found_no_lights", [r"found.*no light", r"no light", r"found.*dark", r"found.*nothing"],
                     "Found boiler without lights",
                     ["Found it but no lights", "Yes found it, nothing on the display"]),
            response("cannot_find", [r"can't find", r"cannot find", r"where is it", r"no idea"],
                     "Cannot locate boiler",
                     ["Can't find it", "I have no idea where it is"]),
        ],
        "transitions": [
            on_response("found_with_lights", goto("check_pressure")),
            on_response("found_no_lights", goto("check_power_supply")),
            on_response("cannot_find", escalate(
                "Tenant cannot locate the boiler",
                ["Property address for contractor visit", "Any photos of where pipes enter the property"],
            )),
        ],
        "fallback_transition": always(goto("check_power")),
    },
    {
        "id": "check_power_supply",
        "type": "instruction",
        "template": (
            "The boiler might have lost power. Please check:\n\n"
            "1. Is there a switch on the wall near the boiler? Make sure it's ON.\n"
            "2. Check your fuse box for any tripped switches.\n\n"
            "Once you've checked these, has anything changed?"
        ),
        "expected_responses": [
            response("power_restored", [r"working", r"on now", r"came on", r"lights on", r"fixed"],
                     "Power has been restored",
                     ["It came on!", "It's working now", "The lights came on"]),
            response("still_no_power", [r"still (no|nothing)", r"didn't work", r"no change", r"same"],
                     "Still no power",
                     ["Still nothing", "No change", "Still not working"]),
            response("tripped_fuse", [r"fuse.*tripped", r"switch.*tripped", r"flipped.*back"],
                     "Found a tripped fuse",
                     ["Found a tripped switch", "The fuse was tripped"]),
        ],
        "transitions": [
            on_response("power_restored", goto("check_pressure")),
            on_response("tripped_fuse", goto("fuse_tripped_warning")),
            on_response("still_no_power", escalate(
                "Boiler has no power - may need electrical inspection",
                ["Age of boiler if known", "Any recent electrical work", "Photo of the boiler"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Unable to restore boiler power",
            ["Photo of the boiler", "Photo of fuse box"],
        )),
    },
    {
        "id": "fuse_tripped_warning",
        "type": "instruction",
        "template": (
            "A tripped fuse can indicate an electrical fault. If the fuse trips again after you reset it, please "
            "don't keep resetting it - this could indicate a serious problem. Has the boiler stayed on after "
            "resetting the fuse?"
        ),
        "expected_responses": [
            response("staying_on", [r"yes", r"staying on", r"working", r"fine now"],
                     "Boiler is staying on",
                     ["Yes", "It's staying on", "Working now"]),
            response("tripped_again", [r"tripped again", r"went off", r"keeps tripping"],
                     "Fuse keeps tripping",
                     ["It tripped again", "Keeps going off"]),
        ],
        "transitions": [
            on_response("staying_on", goto("check_pressure")),
            on_response("tripped_again", escalate(
                "Boiler keeps tripping the fuse - potential electrical fault",
                ["Urgently needs Gas Safe registered engineer"],
            )),
        ],
        "fallback_transition": always(goto("check_pressure")),
    },
    {
        "id": "check_pressure",
        "type": "question",
        "template": (
            "Great, now let's check the boiler pressure. Look for a small gauge on the front - it's usually a "
            "dial or digital display showing 'bar'. What pressure does it show?\n\n"
            "(Normal is between 1.0 and 1.5 bar)"
        ),
        "extract": ["pressure"],
        "expected_responses": [
            response("pressure_low", [r"0\.[0-9]", r"under 1", r"below 1", r"low", r"red", r"zero", r"0 bar"],
                     "Pressure is below 1 bar",
                     ["0.5 bar", "Under 1 bar", "It's in the red", "Very low", "Shows 0"]),
            response("pressure_normal", [r"1\.[0-4]", r"1 bar", r"green", r"normal", r"middle"],
                     "Pressure is in normal range",
                     ["1.2 bar", "About 1 bar", "It's in the green", "Looks normal"]),
            response("pressure_high", [r"[2-9]\.[0-9]", r"over 2", r"above 2", r"high", r"too high", r"3 bar"],
                     "Pressure is above 2 bar",
                     ["2.5 bar", "Over 2", "It says 3", "Very high"]),
            response("no_gauge", [r"can't (find|see)", r"no gauge", r"where is", r"don't know"],
                     "Cannot find or read the gauge",
                     ["Can't find the gauge", "Don't see any numbers", "Where should I look?"]),
        ],
        "transitions": [
            on_response("pressure_low", goto("repressurize_instructions")),
            on_response("pressure_normal", goto("check_thermostat")),
            on_response("pressure_high", goto("pressure_too_high")),
            on_response("no_gauge", goto("help_find_gauge")),
        ],
        "fallback_transition": always(retry(
            "I need to know the pressure reading. Look for a dial or digital display on the boiler - "
            "it should show a number followed by 'bar'. What number do you see?"
        )),
    },
    {
        "id": "help_find_gauge",
        "type": "instruction",
        "template": (
            "The pressure gauge is usually:\n"
            "- A round dial with numbers 0-4\n"
            "- Or a digital display showing something like '1.2'\n\n"
            "It's often at the bottom of the boiler or on the front panel. Can you see anything like that?"
        ),
        "media_url": "https://example.com/boiler-gauge-diagram.png",
        "extract": ["pressure"],
        "expected_responses": [
            response("found_low", [r"found.*low", r"see.*0\.", r"below 1"],
                     "Found gauge showing low pressure",
                     ["Found it, shows 0.5", "I see it, it's below 1"]),
            response("found_normal", [r"found.*1\.", r"see.*1\.", r"normal"],
                     "Found gauge showing normal pressure",
                     ["Found it, shows 1.2", "See it now, looks normal"]),
            response("still_cant_find", [r"still can't", r"no", r"not there"],
                     "Still cannot find gauge",
                     ["Still can't find it", "It's not there"]),
        ],
        "transitions": [
            on_response("found_low", goto("repressurize_instructions")),
            on_response("found_normal", goto("check_thermostat")),
            on_response("still_cant_find", goto("request_photo")),
        ],
        "fallback_transition": always(goto("request_photo")),
    },
    {
        "id": "request_photo",
        "type": "media_request",
        "template": "Could you send me a photo of the front of your boiler? This will help me guide you better.",
        "expected_responses": [],
        "transitions": [
            on_media("photo", escalate("Photo received for manual review")),
        ],
        "fallback_transition": after_attempts(2, escalate(
            "Cannot identify pressure gauge location",
            ["Boiler make and model", "Age of boiler"],
        )),
    },
    {
        "id": "pressure_too_high",
        "type": "instruction",
        "template": (
            "The pressure is too high (over 2 bar). This can be dangerous if it gets much higher. "
            "**Do not try to add more water.**\n\n"
            "The pressure can be released by bleeding a radiator, but for safety I recommend we send an engineer. "
            "Would you like me to arrange a visit?"
        ),
        "expected_responses": [
            response("yes_engineer", [r"^yes", r"please", r"send someone", r"arrange"],
                     "Wants engineer visit",
                     ["Yes please", "Please send someone", "Yes arrange a visit"]),
            response("will_try_bleed", [r"try.*bleed", r"bleed.*radiator", r"do it myself"],
                     "Wants to try bleeding radiator",
                     ["I'll try bleeding a radiator", "Let me try that first"]),
        ],
        "transitions": [
            on_response("yes_engineer", end_flow("needs_callout")),
            on_response("will_try_bleed", goto("bleed_radiator_instructions")),
        ],
        "fallback_transition": always(end_flow("needs_callout")),
    },
    {
        "id": "bleed_radiator_instructions",
        "type": "instruction",
        "template": (
            "To bleed a radiator:\n\n"
            "1. Turn off your heating\n"
            "2. Find a radiator with a small square valve at the top corner\n"
            "3. Place a cloth underneath\n"
            "4. Use a radiator key to slowly turn the valve anti-clockwise\n"
            "5. When water starts dripping, close the valve\n\n"
            "Check the boiler pressure after - did it come down?"
        ),
        "extract": ["pressure"],
        "expected_responses": [
            response("pressure_down", [r"came down", r"lower", r"normal", r"better", r"1\.[0-4]"],
                     "Pressure has reduced",
                     ["Yes it came down", "It's lower now", "Shows 1.2 now"]),
            response("still_high", [r"still high", r"same", r"didn't work", r"no change"],
                     "Pressure still high",
                     ["Still high", "No change", "Didn't work"]),
        ],
        "transitions": [
            on_response("pressure_down", goto("check_thermostat")),
            on_response("still_high", end_flow("needs_callout")),
        ],
        "fallback_transition": always(goto("check_thermostat")),
    },
    {
        "id": "repressurize_instructions",
        "type": "instruction",
        "template": (
            "Low pressure is a common issue and usually easy to fix. Look underneath or near the boiler for a "
            "filling loop - it's a braided silver hose with one or two valves.\n\n"
            "Do you see a filling loop?"
        ),
        "expected_responses": [
            response("see_loop", [r"^yes", r"see it", r"found it", r"braided", r"silver hose"],
                     "Can see the filling loop",
                     ["Yes", "I see it", "Found it"]),
            response("no_loop", [r"^no", r"can't see", r"don't see", r"not there"],
                     "Cannot find filling loop",
                     ["No", "Can't see one", "It's not there"]),
            response("keyed_type", [r"key", r"insert", r"slot"],
                     "Boiler has key-operated filling",
                     ["There is a key slot", "It needs a key"]),
        ],
        "transitions": [
            on_response("see_loop", goto("do_repressurize")),
            on_response("no_loop", goto("internal_filling_loop")),
            on_response("keyed_type", goto("keyed_filling_instructions")),
        ],
        "fallback_transition": always(retry(
            "Look around and underneath the boiler for a braided silver hose connecting two pipes. "
            "Can you see anything like that?"
        )),
    },
    {
        "id": "internal_filling_loop",
        "type": "instruction",
        "template": (
            "Some modern boilers have an internal filling loop. Check underneath the boiler for:\n"
            "- A small lever or tap\n"
            "- A slot where a key might go\n"
            "- Any button labeled 'fill' or with a water drop symbol\n\n"
            "Do you see any of these?"
        ),
        "expected_responses": [
            response("found_lever", [r"lever", r"tap", r"found"],
                     "Found a lever or tap",
                     ["Found a lever", "There is a tap", "Yes found something"]),
            response("found_key_slot", [r"key", r"slot"],
                     "Found key slot",
                     ["There is a key slot", "Found where a key goes"]),
            response("nothing_found", [r"no", r"nothing", r"can't find"],
                     "Cannot find any filling mechanism",
                     ["No", "Nothing like that", "Can't find anything"]),
        ],
        "transitions": [
            on_response("found_lever", goto("do_repressurize")),
            on_response("found_key_slot", goto("keyed_filling_instructions")),
            on_response("nothing_found", escalate(
                "Cannot locate filling loop - may be inaccessible or missing",
                ["Boiler make and model", "Photo of boiler underside"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Unable to identify filling loop type",
            ["Boiler make and model"],
        )),
    },
    {
        "id": "keyed_filling_instructions",
        "type": "instruction",
        "template": (
            "Some boilers need a special filling key. This is often stored:\n"
            "- In a cupboard with the boiler manuals\n"
            "- Hanging near the boiler\n"
            "- In the kitchen drawer with house documents\n\n"
            "Do you have the filling key?"
        ),
        "expected_responses": [
            response("have_key", [r"^yes", r"have it", r"found it", r"got it"],
                     "Has the filling key",
                     ["Yes", "Found it", "Got it"]),
            response("no_key", [r"^no", r"don't have", r"can't find", r"lost"],
                     "Does not have the key",
                     ["No", "Don't have one", "Can't find it"]),
        ],
        "transitions": [
            on_response("have_key", goto("do_repressurize")),
            on_response("no_key", escalate(
                "Missing filling key - engineer can bring replacement",
                ["Boiler make and model"],
            )),
        ],
        "fallback_transition": always(escalate(
            "Keyed filling loop - tenant needs assistance",
            ["Boiler make and model"],
        )),
    },
    {
        "id": "do_repressurize",
        "type": "instruction",
        "template": (
            "Perfect! Now let's add pressure:\n\n"
            "1. Slowly open the valve(s) on the filling loop\n"
            "2. Watch the pressure gauge\n"
            "3. Stop when it reaches 1.0-1.5 bar\n"
            "4. Close the valve(s) completely\n\n"
            "**Important**: Add pressure slowly and don't go above 1.5 bar.\n\n"
            "Let me know when you've done this - what does the pressure show now?"
        ),
        "extract": ["pressure"],
        "expected_responses": [
            response("pressure_ok", [r"1\.[0-4]", r"good", r"done", r"working", r"1 bar", r"1.2", r"1.5"],
                     "Pressure is now in normal range",
                     ["Shows 1.2 now", "Done - looks good", "Working"]),
            response("went_too_high", [r"too high", r"over 2", r"went up too much", r"2 bar", r"2.5"],
                     "Pressure went too high",
                     ["Went too high", "It's over 2 bar now", "I put in too much"]),
            response("wont_go_up", [r"won't go up", r"not changing", r"stays low", r"no change"],
                     "Pressure not increasing",
                     ["Won't go up", "Nothing happening", "Stays at 0"]),
        ],
        "transitions": [
            on_response("pressure_ok", goto("confirm_repressurize")),
            on_response("went_too_high", goto("bleed_radiator_instructions")),
            on_response("wont_go_up", escalate(
                "Pressure not increasing - possible leak or valve issue",
                ["Any visible leaks?", "Photo of filling loop"],
            )),
        ],
        "fallback_transition": always(retry(
            "What does the pressure gauge show now? It should be between 1.0 and 1.5 bar."
        )),
    },
    {
        "id": "confirm_repressurize",
        "type": "confirmation",
        "template": (
            "Excellent! The pressure looks good. Now try turning on your heating using the thermostat or timer. "
            "Give it 5-10 minutes to warm up.\n\n"
            "Is heat coming through the radiators?"
        ),
        "confirmation_required": True,
        "expected_responses": [
            response("heat_working", [r"^yes", r"working", r"warm", r"hot", r"heating up", r"fixed"],
                     "Heating is now working",
                     ["Yes!", "It's working", "Radiators are warming up", "Fixed!"]),
            response("still_no_heat", [r"^no", r"not working", r"still cold", r"nothing"],
                     "Still no heat",
                     ["No", "Still cold", "Nothing happening"]),
            response("some_radiators", [r"some", r"one", r"few", r"not all"],
                     "Only some radiators heating",
                     ["Some are warm", "Only one is hot", "Not all of them"]),
        ],
        "transitions": [
            on_response("heat_working", resolve(
                "Your boiler needed repressurizing and is now working. If the pressure drops again frequently, "
                "it might indicate a small leak - let us know if it happens again."
            )),
            on_response("some_radiators", goto("some_radiators_cold")),
            on_response("still_no_heat", goto("check_thermostat")),
        ],
        "fallback_transition": always(retry(
            "Please wait a few minutes for the system to heat up. Are the radiators getting warm?"
        )),
    },
    {
        "id": "some_radiators_cold",
        "type": "instruction",
        "template": (
            "If only some radiators are cold, they might need bleeding (removing trapped air). "
            "For each cold radiator:\n\n"
            "1. Use a radiator key to open the bleed valve at the top corner\n"
            "2. Listen for air hissing out\n"
            "3. Close when water starts to drip\n\n"
            "After bleeding, check the boiler pressure - you may need to top it up again. Did this help?"
        ),
        "expected_responses": [
            response("all_working", [r"working", r"all.*warm", r"fixed", r"yes"],
                     "All radiators now working",
                     ["Yes all working now", "Fixed!", "All warm now"]),
            response("still_cold", [r"still cold", r"no", r"didn't work"],
                     "Radiators still cold",
                     ["Still cold", "Didn't help", "No change"]),
        ],
        "transitions": [
            on_response("all_working", resolve(
                "Great! Your radiators needed bleeding. This is normal - air can build up over time. "
                "The system should work well now."
            )),
            on_response("still_cold", escalate(
                "Radiators not heating after bleeding - possible valve or pump issue",
                ["Which radiators are cold?", "Are the thermostatic valves open?"],
            )),
        ],
        "fallback_transition": always(end_flow("needs_callout")),
    },
    {
        "id": "check_thermostat",
        "type": "question",
        "template": (
            "Let's check the thermostat controls. Can you confirm:\n\n"
            "1. The thermostat is set higher than room temperature\n"
            "2. The heating timer/schedule is set to 'on'\n"
            "3. Any room thermostats are turned up\n\n"
            "Are all these set correctly?"
        ),
        "extract": ["temperature"],
        "expected_responses": [
            response("all_correct", [r"^yes", r"all.*correct", r"all.*on", r"set.*correctly"],
                     "All settings are correct",
                     ["Yes", "All correct", "Everything is on"]),
            response("found_issue", [r"found.*issue", r"wasn't.*on", r"timer.*off", r"working now"],
                     "Found and fixed a setting issue",
                     ["Timer was off", "Found it - wasn't on", "Working now!"]),
            response("not_sure", [r"not sure", r"don't know", r"how do i"],
                     "Unsure about settings",
                     ["Not sure", "Don't know how to check", "How do I check?"]),
        ],
        "transitions": [
            on_response("found_issue", resolve(
                "Great catch! The controls needed adjusting. Your heating should work normally now."
            )),
            on_response("all_correct", goto("escalate_callout")),
            on_response("not_sure", goto("thermostat_help")),
        ],
        "fallback_transition": always(goto("escalate_callout")),
    },
    {
        "id": "thermostat_help",
        "type": "instruction",
        "template": (
            "Let me help you check:\n\n"
            "**Room Thermostat**: Usually on a wall - turn the dial up until you hear a click, or set digital "
            "display to 21C or higher.\n\n"
            "**Timer/Programmer**: Usually near the boiler or in the hallway. Make sure it shows heating is 'ON' "
            "or in an active time period.\n\n"
            "Have you tried turning these up?"
        ),
        "extract": ["temperature"],
        "expected_responses": [
            response("adjusted_working", [r"working", r"heating", r"warm", r"clicked", r"came on"],
                     "Heating now working after adjustment",
                     ["It clicked and came on!", "Heating now", "Working!"]),
            response("still_nothing", [r"^no", r"nothing", r"still", r"not working"],
                     "Still not working",
                     ["Nothing", "Still not working", "No change"]),
        ],
        "transitions": [
            on_response("adjusted_working", resolve(
                "Perfect! The thermostat just needed adjusting. Your heating should work normally now."
            )),
            on_response("still_nothing", goto("escalate_callout")),
        ],
        "fallback_transition": always(goto("escalate_callout")),
    },
    {
        "id": "escalate_callout",
        "type": "confirmation",
        "template": (
            "I've checked everything I can remotely. The boiler may need a professional inspection. "
            "Common causes at this stage include:\n"
            "- Faulty pump\n"
            "- Blocked heat exchanger\n"
            "- Diverter valve issues\n\n"
            "I'll arrange for a Gas Safe registered engineer to visit. Is there anything else you can tell me "
            "about the boiler's behavior?"
        ),
        "expected_responses": [
            response("has_info", [r"noise", r"smell", r"leak", r"error", r"code", r"flashing"],
                     "Has additional symptoms to report",
                     ["There is a noise", "It shows an error code", "There's a smell"]),
            response("no_info", [r"^no", r"nothing", r"that's all"],
                     "No additional information",
                     ["No", "That's everything", "Nothing else"]),
        ],
        "transitions": [
            on_response("has_info", escalate(
                "Boiler not heating - requires professional diagnosis",
                ["Additional symptoms described by tenant"],
            )),
            on_response("no_info", end_flow("needs_callout")),
        ],
        "fallback_transition": always(end_flow("needs_callout")),
    },
]

BOILER_NO_HEAT_FLOW = Flow.model_validate({
    "id": "boiler_no_heat",
    "name": "Boiler Not Heating",
    "description": "Troubleshoot a boiler that is not producing heat for the central heating or hot water system.",
    "category": "heating",
    "trigger_keywords": [
        "no heat",
        "no heating",
        "boiler not working",
        "cold radiators",
        "no hot water",
        "heating broken",
        "boiler fault",
        "radiators cold",
        "central heating",
    ],
    "safe_for_diy": True,
    "safety_warning": (
        "If you smell gas, leave the property immediately and call the National Gas Emergency Line: "
        "0800 111 999. Do not touch any electrical switches."
    ),
    "max_attempts": 3,
    "estimated_time_minutes": 10,
    "steps": STEPS,
    "escalation_data_needed": [
        "Boiler make and model",
        "Current pressure reading",
        "Any error codes displayed",
        "Age of boiler if known",
        "Photo of boiler front panel",
    ],
})
