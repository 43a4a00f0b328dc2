from sheet_transposer.vision import VisionCapability, detect_vision_capability


def test_detect_vision_capability_with_opencv():
    vision = detect_vision_capability()
    assert vision.available
    assert vision.adaptive_threshold
    assert vision.version


def test_disabled_capability_declines_everything():
    vision = VisionCapability.disabled()
    assert not vision.available
    assert not vision.adaptive_threshold
