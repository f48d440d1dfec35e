"""
The MODEL layer contains pure data structures and the refinement algorithm.
It has NO knowledge of the projector that consumes the sample points.
"""
