from sheet_transposer.gradio_app import preset_changed, preset_descriptions


def test_preset_descriptions_show_interval():
    assert preset_descriptions["Bb Instruments"].endswith("(+2 semitones)")


def test_custom_preset_reveals_slider():
    description, update = preset_changed("Custom")
    assert description == preset_descriptions["Custom"]
    assert update["visible"] is True


def test_fixed_preset_hides_slider():
    _, update = preset_changed("F Instruments")
    assert update["visible"] is False
