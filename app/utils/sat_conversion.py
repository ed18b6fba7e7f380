"""
Static raw-to-scaled conversion table for SAT-style practice tests.

Each row is ``(raw_score, reading_writing_score, math_score)``. The raw score is
the number of correctly answered questions in the scored group. The math group
has 44 questions, so its column is None above that.
"""

SAT_FLOOR_SCORE = 200

SAT_CONVERSION_TABLE = (
    (0, 200, 200),
    (1, 200, 200),
    (2, 210, 210),
    (3, 230, 230),
    (4, 250, 250),
    (5, 260, 270),
    (6, 280, 290),
    (7, 290, 300),
    (8, 310, 320),
    (9, 320, 330),
    (10, 330, 350),
    (11, 340, 360),
    (12, 360, 380),
    (13, 370, 390),
    (14, 380, 400),
    (15, 390, 420),
    (16, 410, 430),
    (17, 420, 440),
    (18, 430, 450),
    (19, 440, 460),
    (20, 450, 470),
    (21, 460, 480),
    (22, 470, 490),
    (23, 480, 500),
    (24, 490, 510),
    (25, 500, 520),
    (26, 510, 530),
    (27, 520, 540),
    (28, 530, 550),
    (29, 540, 550),
    (30, 550, 560),
    (31, 560, 570),
    (32, 570, 580),
    (33, 570, 590),
    (34, 580, 610),
    (35, 590, 620),
    (36, 600, 640),
    (37, 600, 650),
    (38, 610, 670),
    (39, 610, 690),
    (40, 620, 710),
    (41, 630, 730),
    (42, 640, 750),
    (43, 650, 780),
    (44, 660, 800),
    (45, 670, None),
    (46, 680, None),
    (47, 690, None),
    (48, 710, None),
    (49, 720, None),
    (50, 740, None),
    (51, 750, None),
    (52, 770, None),
    (53, 790, None),
    (54, 800, None),
)
