from typing import Sequence

from region_edit.host import TokenExample


PREVIEW_TITLES = {
    "region": "Edit selected region",
    "portrait": "Edit portrait",
    "token": "Edit token",
    "token_generation": "Generate token from portrait",
}


def assemble_reference_prompt(instruction: str, examples: Sequence[TokenExample]) -> str:
    """
    Append the style descriptions of the chosen reference images to an instruction.

    Examples without a description add nothing; with no descriptions at all
    the instruction is returned unchanged.
    """
    descriptions = [example.prompt for example in examples if example.prompt]
    if not descriptions:
        return instruction
    return instruction + "\n\nReference style descriptions:\n" + "\n".join(descriptions)
